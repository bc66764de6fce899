"""Divide a table into partitions by one or more key columns.

A partitioning maps each distinct key tuple to the positional indices of the
records that carry it. It is a view over the source frame: no rows are copied
until a caller asks for one partition's frame.

Null key values (None / NaN / NaT) are a key value of their own and are kept
by default, so every record lands in exactly one partition. ``dropna=True``
excludes records with any null key instead; the partitioning then covers only
the retained records.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from dnr.core.errors import InvalidKey

__all__ = ['Partitioner', 'Partitioning', 'normalize_key_value']

logger = logging.getLogger(__name__)


def normalize_key_value(value: Any) -> Any:
    """Return a hashable, comparable Python value for one key component.

    Nulls of every flavour collapse to None and numpy scalars become Python
    scalars, so ``(np.int64(1), np.nan)`` and ``(1, None)`` are the same key.
    """
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # array-like values are not valid keys for isna(); keep as given
        pass
    if isinstance(value, np.generic):
        return value.item()
    return value


@dataclass(frozen=True, eq=False)
class Partitioning:
    """Result of Partitioner.partition().

    Attributes
    ----------
    keys : tuple of str
        Key columns, in the order they were requested.
    frame : pd.DataFrame
        The source frame (not copied).
    groups : dict
        Key tuple -> int64 array of positional row indices into ``frame``.
    """
    keys: Tuple[str, ...]
    frame: pd.DataFrame
    groups: Dict[tuple, np.ndarray]

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[Tuple[tuple, np.ndarray]]:
        return iter(self.groups.items())

    def __contains__(self, key) -> bool:
        return self._as_key(key) in self.groups

    def _as_key(self, key) -> tuple:
        if not isinstance(key, tuple):
            key = (key,)
        return tuple(normalize_key_value(v) for v in key)

    def indices(self, key) -> np.ndarray:
        """Positional indices for one key tuple (KeyError if absent)."""
        return self.groups[self._as_key(key)]

    def frame_of(self, key) -> pd.DataFrame:
        """Materialize the records of one partition."""
        return self.frame.iloc[self.indices(key)]

    def sizes(self) -> Dict[tuple, int]:
        """Record count per partition."""
        return {key: int(len(idx)) for key, idx in self.groups.items()}

    @property
    def n_records(self) -> int:
        """Number of records covered by this partitioning."""
        return int(sum(len(idx) for idx in self.groups.values()))


class Partitioner:
    """Group a tabular dataset by an ordered list of key columns.

    Parameters
    ----------
    keys : sequence of str
        Key column names. Order determines the order of components in each
        key tuple and of key columns in downstream summary tables.
    dropna : bool, optional
        If False (default), null key values form their own partition.
        If True, records with a null in any key column are excluded.

    Examples
    --------
    >>> parts = Partitioner(["carrier"]).partition(flights)
    >>> parts.sizes()
    {('A',): 2, ('B',): 1}
    """

    def __init__(self, keys: Sequence[str], dropna: bool = False):
        if isinstance(keys, str):
            keys = [keys]
        keys = tuple(keys)
        if not keys:
            raise InvalidKey("<none>", where="partition request (no key columns given)")
        self.keys = keys
        self.dropna = dropna

    def validate(self, frame: pd.DataFrame) -> None:
        """Raise InvalidKey for the first requested key missing from ``frame``."""
        for key in self.keys:
            if key not in frame.columns:
                raise InvalidKey(key, frame.columns)

    def partition(self, frame: pd.DataFrame) -> Partitioning:
        """Build the key tuple -> record indices mapping for ``frame``.

        Raises
        ------
        InvalidKey
            If a key column does not exist in ``frame``.
        """
        self.validate(frame)

        n = len(frame)
        if n == 0:
            return Partitioning(self.keys, frame, {})

        # One integer code per key column; NA gets its own code
        codes: List[np.ndarray] = []
        uniques: List[Any] = []
        for key in self.keys:
            col_codes, col_uniques = pd.factorize(frame[key], use_na_sentinel=False)
            codes.append(np.asarray(col_codes, dtype=np.int64))
            uniques.append(col_uniques)

        stacked = np.column_stack(codes)
        combos, first_rows, inverse = np.unique(
            stacked, axis=0, return_index=True, return_inverse=True
        )
        inverse = np.asarray(inverse).reshape(-1)

        order = np.argsort(inverse, kind="stable")
        bounds = np.flatnonzero(np.diff(inverse[order])) + 1
        chunks = np.split(order, bounds)

        groups: Dict[tuple, np.ndarray] = {}
        dropped = 0
        # first-appearance order of key tuples
        for combo_idx in np.argsort(first_rows, kind="stable"):
            combo = combos[combo_idx]
            key = tuple(
                normalize_key_value(uniques[i][code]) for i, code in enumerate(combo)
            )
            idx = chunks[combo_idx].astype(np.int64, copy=False)
            if self.dropna and any(v is None for v in key):
                dropped += len(idx)
                continue
            if key in groups:
                # None and NaN can factorize apart but are the same null key
                idx = np.sort(np.concatenate([groups[key], idx]))
            groups[key] = idx

        if dropped:
            logger.info("Dropped %d records with null keys in %s", dropped, list(self.keys))
        logger.debug("Partitioned %d records into %d partitions by %s",
                     n, len(groups), list(self.keys))

        return Partitioning(self.keys, frame, groups)
