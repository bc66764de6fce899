"""Recombination and join stage contracts.

Enforces the guarantee that the summary table holds exactly one row per
key tuple, and that a left join neither drops nor duplicates rows.
"""

import pandas as pd
from dnr.contracts.base import require


def assert_recombined(summary: pd.DataFrame, keys, outputs) -> None:
    """Enforce recombination stage contract.

    Parameters
    ----------
    summary : pd.DataFrame
        Output of Recombiner.recombine()

    keys : list of str
        Partition key columns

    outputs : list of str
        Aggregate output columns

    Raises
    ------
    ContractViolation
        If columns are missing or a key tuple repeats
    """
    require(
        isinstance(summary, pd.DataFrame),
        f"Recombine contract violated: output is {type(summary)}, expected DataFrame",
        stage="recombine",
    )
    for col in list(keys) + list(outputs):
        require(
            col in summary.columns,
            f"Recombine contract violated: missing column '{col}'",
            stage="recombine",
        )
    if len(summary) > 0:
        # duplicated() treats nulls as equal, matching null-as-key semantics
        require(
            not summary.duplicated(subset=list(keys)).any(),
            "Recombine contract violated: key tuples are not unique",
            stage="recombine",
        )


def assert_joined(joined: pd.DataFrame, n_rows: int) -> None:
    """Enforce join stage contract: row count preserved."""
    require(
        len(joined) == n_rows,
        f"Join contract violated: {len(joined)} rows after join, expected {n_rows}",
        stage="join",
    )
