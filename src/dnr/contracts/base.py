"""Stage contract primitives.

Every contract check goes through require(). A failed check raises
ContractViolation tagged with the stage that broke its guarantee, so the
orchestrator can report which boundary failed without parsing messages.
"""

from typing import Optional


class ContractViolation(RuntimeError):
    """A stage returned something it promised never to return.

    This signals a bug in dnr itself (or a panel set driven through the
    life cycle out of order), never a malformed request. Requests that do
    not fit the data raise a ``DnrError`` subclass instead, and incomplete
    panels are recorded on the panel set rather than raised.

    Attributes
    ----------
    stage : str or None
        ``"partition"``, ``"recombine"``, ``"join"`` or ``"panels"``.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


def require(condition: bool, message: str, stage: Optional[str] = None) -> None:
    """Raise ContractViolation with ``message`` unless ``condition`` holds.

    Examples
    --------
    >>> require(len(joined) == len(summary), "row count changed", stage="join")
    """
    if not condition:
        raise ContractViolation(message, stage)
