"""Request errors raised by the divide-and-recombine stages.

These are structural problems with a caller's request (a column that does
not exist, an aggregation that names no outputs, a lookup table that cannot
be joined unambiguously). They are fatal to the single call that raised
them and carry the offending column or field name.

Key distinction:
- DnrError: the request is malformed; fix the call and retry
- ContractViolation: a stage broke its own guarantee (pipeline bug)
- IncompletePanel: not an error at all; an expected, logged exclusion

DnrError deliberately does not derive from ValueError so that it passes
through pydantic validators unchanged instead of being wrapped in a
ValidationError.
"""

from typing import Iterable, Optional

__all__ = [
    'DnrError',
    'InvalidKey',
    'EmptyAggregationSpec',
    'UnknownReducer',
    'AmbiguousJoin',
    'DuplicateSubPeriod',
    'UnexpectedSubPeriod',
    'ColumnConflict',
]


class DnrError(Exception):
    """Base class for all request errors."""
    pass


class InvalidKey(DnrError):
    """A requested column is absent from the table it was looked up in."""

    def __init__(self, column: str, available: Optional[Iterable[str]] = None,
                 where: str = "dataset"):
        self.column = column
        self.available = list(available) if available is not None else None
        self.where = where
        message = f"Column {column!r} not found in {where}"
        if self.available is not None:
            message += f" (available: {', '.join(map(str, self.available))})"
        super().__init__(message)


class EmptyAggregationSpec(DnrError):
    """An aggregation request named no output fields."""

    def __init__(self, message: str = "Aggregation spec requests no output fields"):
        super().__init__(message)


class UnknownReducer(DnrError):
    """An aggregation request named a reducer outside the supported set."""

    def __init__(self, output: str, reducer: str, known: Iterable[str] = ()):
        self.output = output
        self.reducer = reducer
        self.known = sorted(known)
        message = f"Unknown reducer {reducer!r} for output {output!r}"
        if self.known:
            message += f" (expected one of: {', '.join(self.known)})"
        super().__init__(message)


class AmbiguousJoin(DnrError):
    """The auxiliary side of a join has repeated key values."""

    def __init__(self, key: str, duplicates: Iterable = ()):
        self.key = key
        self.duplicates = list(duplicates)
        sample = ", ".join(repr(v) for v in self.duplicates[:5])
        message = f"Join key {key!r} is not unique in lookup table"
        if sample:
            message += f" (repeated values: {sample}"
            if len(self.duplicates) > 5:
                message += f", ... {len(self.duplicates) - 5} more"
            message += ")"
        super().__init__(message)


class DuplicateSubPeriod(DnrError):
    """A panel group holds more than one summary row for a sub-period."""

    def __init__(self, panel: tuple, column: str, periods: Iterable):
        self.panel = panel
        self.column = column
        self.periods = list(periods)
        super().__init__(
            f"Panel {panel!r} has repeated {column!r} values: {self.periods!r}"
        )


class UnexpectedSubPeriod(DnrError):
    """A panel group covers sub-periods outside the expected set."""

    def __init__(self, panel: tuple, column: str, found: int, expected: int,
                 unexpected: Iterable = ()):
        self.panel = panel
        self.column = column
        self.found = found
        self.expected = expected
        self.unexpected = list(unexpected)
        message = (
            f"Panel {panel!r} has {found} distinct {column!r} values, "
            f"expected at most {expected}"
        )
        if self.unexpected:
            message += f" (unexpected: {self.unexpected!r})"
        super().__init__(message)


class ColumnConflict(DnrError):
    """A derived column would overwrite a column that already exists."""

    def __init__(self, column: str, where: str = "panel rows"):
        self.column = column
        self.where = where
        super().__init__(f"Column {column!r} already exists in {where}")
