"""Pipeline contracts: fail-fast enforcement of stage invariants.

This package enforces semantic guarantees between pipeline stages.
Contracts fail immediately and loudly when pipeline stages don't produce
their promised invariants.

Key principle:
- Pydantic validates config and request correctness
- Contracts validate pipeline correctness
- Stages treat empty partitions and incomplete panels as valid outcomes
"""

from dnr.contracts.base import ContractViolation, require
from dnr.contracts.partition import assert_partitioned
from dnr.contracts.summary import assert_recombined, assert_joined
from dnr.contracts.panels import assert_annotated
from dnr.contracts.invariants import PIPELINE_INVARIANTS

__all__ = [
    "ContractViolation",
    "require",
    "assert_partitioned",
    "assert_recombined",
    "assert_joined",
    "assert_annotated",
    "PIPELINE_INVARIANTS",
]
