"""Partition stage contract.

Enforces the guarantee that a partitioning is exhaustive and disjoint:
every record of the source frame belongs to exactly one partition.
"""

import numpy as np
from dnr.contracts.base import require


def assert_partitioned(partitioning, n_records: int) -> None:
    """Enforce partition stage contract.

    Called after Partitioner.partition(). When null keys are dropped the
    partitioning only has to cover the retained records; ``n_records``
    is then the retained count.

    Parameters
    ----------
    partitioning : Partitioning
        Output of Partitioner.partition()

    n_records : int
        Number of records the partitioning must cover.

    Raises
    ------
    ContractViolation
        If a record is missing or appears in more than one partition
    """
    sizes = [len(idx) for idx in partitioning.groups.values()]
    total = int(sum(sizes))
    require(
        total == n_records,
        f"Partition contract violated: partitions hold {total} records, expected {n_records}",
        stage="partition",
    )
    require(
        all(size > 0 for size in sizes),
        "Partition contract violated: empty partition present",
        stage="partition",
    )

    if total == 0:
        return

    members = np.concatenate([np.asarray(idx) for idx in partitioning.groups.values()])
    require(
        np.unique(members).size == members.size,
        "Partition contract violated: a record belongs to more than one partition",
        stage="partition",
    )
