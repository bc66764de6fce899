"""Core infrastructure for the divide-and-recombine stages.

- context: ExecutionContext, the explicitly passed execution back end
- errors: request error taxonomy
"""

from dnr.core.context import ExecutionContext, BACKENDS
from dnr.core.errors import (
    DnrError,
    InvalidKey,
    EmptyAggregationSpec,
    UnknownReducer,
    AmbiguousJoin,
    DuplicateSubPeriod,
    UnexpectedSubPeriod,
    ColumnConflict,
)

__all__ = [
    'ExecutionContext',
    'BACKENDS',
    'DnrError',
    'InvalidKey',
    'EmptyAggregationSpec',
    'UnknownReducer',
    'AmbiguousJoin',
    'DuplicateSubPeriod',
    'UnexpectedSubPeriod',
    'ColumnConflict',
]
