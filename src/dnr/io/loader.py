"""Read record and lookup tables from CSV or parquet into pandas.

This is ingestion glue for the CLI. The divide-and-recombine stages only
ever see the resulting DataFrame.

Column names are normalized on load (optional lowercasing, then renaming),
so the same config works against the raw airline on-time files
(``UniqueCarrier``, ``ArrDelay``, ...) and against pre-cleaned extracts.
"""

import logging
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import pandas as pd
import pyarrow.parquet as pq

from dnr.core.errors import InvalidKey

__all__ = ['load_table', 'normalize_columns', 'SUPPORTED_SUFFIXES']

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".csv.gz", ".parquet", ".pq")


def normalize_columns(df: pd.DataFrame, rename: Optional[Mapping[str, str]] = None,
                      lowercase_columns: bool = True) -> pd.DataFrame:
    """Return ``df`` with lowercased (optional) and renamed column labels."""
    if lowercase_columns:
        df = df.rename(columns=lambda c: str(c).strip().lower())
    if rename:
        df = df.rename(columns=dict(rename))
    return df


def _header(path: Path, suffix: str) -> list:
    """Column labels of a table, read without loading any rows."""
    if suffix in (".parquet", ".pq"):
        return list(pq.read_schema(path).names)
    return list(pd.read_csv(path, nrows=0).columns)


def _suffix(path: Path) -> str:
    name = path.name.lower()
    for suffix in SUPPORTED_SUFFIXES:
        if name.endswith(suffix):
            return suffix
    return path.suffix.lower()


def load_table(
    path: Union[str, Path],
    columns: Optional[Sequence[str]] = None,
    rename: Optional[Mapping[str, str]] = None,
    lowercase_columns: bool = True,
) -> pd.DataFrame:
    """Load a CSV or parquet table.

    Parameters
    ----------
    path : str or Path
        ``.csv``, ``.csv.gz``, ``.parquet`` or ``.pq`` file.
    columns : list of str, optional
        Columns to keep, named as they are *after* normalization.
    rename : dict, optional
        Old name -> new name, applied after lowercasing.
    lowercase_columns : bool
        Lowercase and strip column labels before renaming.

    Returns
    -------
    pd.DataFrame

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the file type is not supported.
    InvalidKey
        If a requested column is not in the file.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")

    suffix = _suffix(path)
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(
            f"Unsupported table format {suffix!r} for {path.name} "
            f"(expected one of: {', '.join(SUPPORTED_SUFFIXES)})"
        )

    # Requested columns are named after normalization; map them back to
    # the file's own labels so only those columns are read
    usecols = None
    if columns:
        header = _header(path, suffix)
        available = list(normalize_columns(pd.DataFrame(columns=header), rename,
                                           lowercase_columns).columns)
        missing = [c for c in columns if c not in available]
        if missing:
            raise InvalidKey(missing[0], available, where=path.name)
        wanted = set(columns)
        usecols = [raw for raw, name in zip(header, available) if name in wanted]

    if suffix in (".csv", ".csv.gz"):
        df = pd.read_csv(path, usecols=usecols, low_memory=False)
    else:
        df = pd.read_parquet(path, engine="pyarrow", columns=usecols)

    df = normalize_columns(df, rename, lowercase_columns)

    if columns:
        df = df[list(columns)]

    logger.info("Loaded %d rows x %d columns from %s", len(df), len(df.columns), path.name)
    return df
