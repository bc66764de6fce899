"""Panel stage contract.

Enforces the guarantee that the panel set handed to a rendering layer is in
its terminal ANNOTATED state, and that no incomplete group slipped through.
"""

from dnr.contracts.base import require


def assert_annotated(panels) -> None:
    """Enforce panel stage contract.

    Parameters
    ----------
    panels : PanelSet
        Output of PanelPreparer.annotate()

    Raises
    ------
    ContractViolation
        If the set or any group is not ANNOTATED, or an excluded panel
        key is still present among the groups
    """
    require(
        panels.state == "annotated",
        f"Panel contract violated: panel set is {panels.state!s}, expected annotated",
        stage="panels",
    )
    for group in panels.groups:
        require(
            group.state == "annotated",
            f"Panel contract violated: group {group.key!r} is {group.state!s}",
            stage="panels",
        )

    excluded = {item.panel for item in panels.excluded}
    leaked = [group.key for group in panels.groups if group.key in excluded]
    require(
        not leaked,
        f"Panel contract violated: incomplete panels reached annotation: {leaked!r}",
        stage="panels",
    )
