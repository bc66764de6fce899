"""Panel preparation: join, completeness filter, cognostics.

A Panel Group is the set of Summary Rows that back one small-multiples panel
(e.g. every monthly summary of one route). Groups move through a strict life
cycle and the PanelSet carries the state of the whole collection:

    RAW ──filter_complete()──▶ FILTERED ──annotate()──▶ ANNOTATED

``filter_complete`` only accepts RAW sets and ``annotate`` only accepts
FILTERED sets, so an incomplete group can never be annotated. Only an
ANNOTATED set can be flattened for a rendering layer (``PanelSet.to_frame``).

Incomplete groups are not errors. They are recorded as IncompletePanel
entries on the set, logged, and left out of every later stage.
"""

import logging
import numbers
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from dnr.contracts import assert_joined, require
from dnr.core.context import ExecutionContext
from dnr.core.errors import (
    AmbiguousJoin,
    ColumnConflict,
    DuplicateSubPeriod,
    InvalidKey,
    UnexpectedSubPeriod,
)
from dnr.recombine.partitioner import Partitioner, normalize_key_value
from dnr.recombine.recombiner import aggregate_frame, as_aggregation_spec, ensure_columns
from dnr.schemas.aggregation import AggregationSpec

__all__ = [
    'PanelState',
    'PanelGroup',
    'PanelSet',
    'IncompletePanel',
    'PanelPreparer',
]

logger = logging.getLogger(__name__)

Disambiguator = Union[str, Callable[[pd.DataFrame], pd.DataFrame]]


class PanelState(str, Enum):
    """Life-cycle state of a panel group (and of the set that holds it)."""
    RAW = "raw"
    FILTERED = "filtered"
    ANNOTATED = "annotated"


@dataclass(frozen=True)
class IncompletePanel:
    """Diagnostic record for a group dropped by the completeness filter.

    Attributes
    ----------
    panel : tuple
        Panel key of the excluded group.
    found : int
        Distinct non-null sub-period values present.
    expected : int
        Size of the full sub-period set.
    missing : tuple
        Expected sub-period values that are absent (only known when the
        expected set is given explicitly).
    null_periods : int
        Rows whose sub-period value is null.
    """
    panel: tuple
    found: int
    expected: int
    missing: tuple = ()
    null_periods: int = 0


@dataclass(frozen=True, eq=False)
class PanelGroup:
    """Summary Rows sharing one panel key, plus its cognostics."""
    key: tuple
    rows: pd.DataFrame
    state: PanelState = PanelState.RAW
    cognostics: Mapping[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True, eq=False)
class PanelSet:
    """Ordered collection of panel groups in a single life-cycle state.

    Attributes
    ----------
    panel_key : tuple of str
        Secondary key columns defining one panel.
    columns : tuple of str
        Columns of the member Summary Rows.
    groups : tuple of PanelGroup
        Retained groups.
    state : PanelState
        State shared by every retained group.
    excluded : tuple of IncompletePanel
        Groups dropped by the completeness filter.
    period_column : str, optional
        Sub-period column, once the completeness filter has run.
    cognostic_names : tuple of str
        Cognostic fields, once the set is annotated.
    """
    panel_key: Tuple[str, ...]
    columns: Tuple[str, ...]
    groups: Tuple[PanelGroup, ...]
    state: PanelState = PanelState.RAW
    excluded: Tuple[IncompletePanel, ...] = ()
    period_column: Optional[str] = None
    cognostic_names: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self):
        return iter(self.groups)

    def keys(self) -> List[tuple]:
        return [group.key for group in self.groups]

    def get(self, key) -> Optional[PanelGroup]:
        """Retained group for ``key`` (a tuple or a single value), or None."""
        if not isinstance(key, tuple):
            key = (key,)
        key = tuple(normalize_key_value(v) for v in key)
        for group in self.groups:
            if group.key == key:
                return group
        return None

    def order_by(self, cognostic: str, ascending: bool = True) -> "PanelSet":
        """Return a copy with groups ordered by one cognostic (nulls last)."""
        require(
            self.state == PanelState.ANNOTATED,
            f"Panels can only be ordered by cognostics once annotated (state is {self.state.value})",
            stage="panels",
        )
        if cognostic not in self.cognostic_names:
            raise InvalidKey(cognostic, self.cognostic_names, where="panel cognostics")

        present = [g for g in self.groups if not _is_null(g.cognostics.get(cognostic))]
        absent = [g for g in self.groups if _is_null(g.cognostics.get(cognostic))]
        present.sort(key=lambda g: g.cognostics[cognostic], reverse=not ascending)
        return replace(self, groups=tuple(present + absent))

    def to_frame(self) -> pd.DataFrame:
        """Flatten to one row per (panel key, sub-period) with cognostic columns.

        Raises
        ------
        ContractViolation
            If the set is not ANNOTATED.
        """
        require(
            self.state == PanelState.ANNOTATED,
            f"Only annotated panels can be handed to a renderer (state is {self.state.value})",
            stage="panels",
        )
        columns = list(self.columns) + list(self.cognostic_names)
        if not self.groups:
            return pd.DataFrame(columns=columns)

        frames = []
        for group in self.groups:
            rows = group.rows
            if self.period_column is not None:
                rows = rows.sort_values(self.period_column, kind="stable", na_position="last")
            rows = rows.assign(**{name: group.cognostics.get(name) for name in self.cognostic_names})
            frames.append(rows)
        return pd.concat(frames, ignore_index=True)[columns]


def _is_null(value: Any) -> bool:
    return normalize_key_value(value) is None


def _ordered(values: Iterable) -> list:
    """Sort values for reporting; fall back to string order for mixed types."""
    values = list(values)
    try:
        return sorted(values)
    except TypeError:
        return sorted(values, key=str)


class PanelPreparer:
    """Build annotated panel groups from a Summary Row table.

    Each step is a separate method and returns a new object; nothing is
    modified in place. Per-group work (joins on a PanelSet, completeness
    checks, cognostics) is handed to the ExecutionContext.

    Parameters
    ----------
    context : ExecutionContext, optional
        Where per-group work runs. Defaults to a sequential context.

    Examples
    --------
    >>> prep = PanelPreparer()
    >>> table = prep.join(summary, airports, on="origin", lookup_key="iata",
    ...                   columns=["airport"], prefix="origin_")
    >>> panels = prep.prepare(table, ["origin", "dest"], "month", 12,
    ...                       {"mean_delay": ("mean", "mean_arr_delay")})
    >>> [p.panel for p in panels.excluded]
    [('LAX', 'JFK')]
    """

    def __init__(self, context: Optional[ExecutionContext] = None):
        self.context = context if context is not None else ExecutionContext("sequential")

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    def _lookup_side(self, lookup: pd.DataFrame, on: str, lookup_key: str,
                     columns: Sequence[str], prefix: str,
                     disambiguate: Optional[Disambiguator]) -> Tuple[pd.DataFrame, Dict[str, str]]:
        """Validate and de-duplicate the auxiliary table; return it renamed."""
        ensure_columns(lookup.columns, [lookup_key] + list(columns), where="lookup table")

        right = lookup[[lookup_key] + [c for c in columns if c != lookup_key]]
        # a null lookup key would otherwise match null summary keys
        right = right[right[lookup_key].notna()]

        dupes = right[lookup_key][right[lookup_key].duplicated()].unique().tolist()
        if dupes:
            if disambiguate is None:
                raise AmbiguousJoin(lookup_key, dupes)
            if callable(disambiguate):
                right = disambiguate(right)
            elif disambiguate in ("first", "last"):
                right = right.drop_duplicates(subset=[lookup_key], keep=disambiguate)
            else:
                raise ValueError(
                    f"disambiguate must be 'first', 'last' or a callable, got {disambiguate!r}"
                )
            remaining = right[lookup_key][right[lookup_key].duplicated()].unique().tolist()
            if remaining:
                raise AmbiguousJoin(lookup_key, remaining)
            logger.info("Resolved %d repeated %r values in lookup table", len(dupes), lookup_key)

        join_col = f"__join_{on}"
        renames = {c: f"{prefix}{c}" for c in columns}
        right = right.assign(**{join_col: right[lookup_key]})
        right = right[[join_col] + list(columns)].rename(columns=renames)
        return right, renames

    def _join_table(self, table: pd.DataFrame, right: pd.DataFrame, on: str,
                    renames: Mapping[str, str]) -> pd.DataFrame:
        join_col = f"__join_{on}"
        joined = table.reset_index(drop=True).merge(
            right, how="left", left_on=on, right_on=join_col,
            validate="many_to_one", sort=False,
        )
        joined = joined.drop(columns=[join_col])
        assert_joined(joined, len(table))
        return joined

    def join(
        self,
        data: Union[pd.DataFrame, PanelSet],
        lookup: pd.DataFrame,
        on: str,
        lookup_key: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
        prefix: str = "",
        disambiguate: Optional[Disambiguator] = None,
    ) -> Union[pd.DataFrame, PanelSet]:
        """Left-join lookup attributes onto Summary Rows.

        Every input row is kept exactly once. Rows with no match carry null
        in the joined columns (see ``with_fallback`` to substitute the key).

        Parameters
        ----------
        data : pd.DataFrame or PanelSet
            Summary Row table, or a panel set (joined per group, state kept).
        lookup : pd.DataFrame
            Auxiliary descriptive table.
        on : str
            Key column in ``data``.
        lookup_key : str, optional
            Key column in ``lookup`` (defaults to ``on``).
        columns : list of str, optional
            Lookup columns to bring over (defaults to all but the key).
        prefix : str
            Prepended to each joined column name.
        disambiguate : {"first", "last"} or callable, optional
            How to resolve repeated lookup keys. A callable receives the
            lookup table and must return one with unique keys.

        Raises
        ------
        InvalidKey
            If ``on``, ``lookup_key`` or a requested column does not exist.
        AmbiguousJoin
            If the lookup key is not unique and is not disambiguated.
        ColumnConflict
            If a joined column name already exists in ``data``.
        """
        lookup_key = lookup_key or on
        if columns is None:
            columns = [c for c in lookup.columns if c != lookup_key]
        columns = list(columns)

        existing = list(data.columns)
        ensure_columns(existing, [on], where="summary table")
        for col in columns:
            if f"{prefix}{col}" in existing:
                raise ColumnConflict(f"{prefix}{col}", "summary table")

        right, renames = self._lookup_side(lookup, on, lookup_key, columns, prefix, disambiguate)

        if isinstance(data, PanelSet):
            groups = self.context.map(
                lambda g: replace(g, rows=self._join_table(g.rows, right, on, renames)),
                data.groups,
            )
            new_columns = tuple(existing) + tuple(renames.values())
            return replace(data, groups=tuple(groups), columns=new_columns)

        joined = self._join_table(data, right, on, renames)
        n_unmatched = int(joined[list(renames.values())].isna().all(axis=1).sum()) if renames else 0
        logger.info(
            "Joined %d lookup columns on %r: %d of %d rows unmatched",
            len(renames), on, n_unmatched, len(joined),
        )
        return joined

    @staticmethod
    def with_fallback(table: pd.DataFrame, fallbacks: Mapping[str, str]) -> pd.DataFrame:
        """Fill null display columns from raw key columns.

        Parameters
        ----------
        table : pd.DataFrame
            Joined Summary Row table.
        fallbacks : dict
            Display column -> key column to copy from where the display
            column is null.
        """
        ensure_columns(table.columns, list(fallbacks) + list(fallbacks.values()),
                       where="summary table")
        filled = table.copy()
        for display_col, key_col in fallbacks.items():
            column = filled[display_col].astype(object)
            filled[display_col] = column.where(column.notna(), filled[key_col])
        return filled

    # ------------------------------------------------------------------
    # Grouping and completeness
    # ------------------------------------------------------------------

    def group(self, table: pd.DataFrame, panel_key: Sequence[str]) -> PanelSet:
        """Group Summary Rows by the panel key into a RAW PanelSet."""
        partitioning = Partitioner(panel_key).partition(table)
        groups = tuple(
            PanelGroup(key=key, rows=table.iloc[indices].reset_index(drop=True))
            for key, indices in partitioning
        )
        logger.debug("Grouped %d summary rows into %d panels by %s",
                     len(table), len(groups), list(partitioning.keys))
        return PanelSet(
            panel_key=partitioning.keys,
            columns=tuple(table.columns),
            groups=groups,
        )

    def filter_complete(self, panels: PanelSet, period_column: str,
                        expected: Union[int, Iterable[Any]]) -> PanelSet:
        """Keep only groups that cover every expected sub-period exactly once.

        Parameters
        ----------
        panels : PanelSet
            RAW panel set.
        period_column : str
            Sub-period column (e.g. ``month``).
        expected : int or iterable
            Size of the full sub-period set (any integer type, numpy
            included), or the set itself.

        Returns
        -------
        PanelSet
            FILTERED set. Dropped groups are listed in ``excluded``.

        Raises
        ------
        ContractViolation
            If ``panels`` is not RAW.
        InvalidKey
            If ``period_column`` does not exist.
        DuplicateSubPeriod
            If a group holds two rows for the same sub-period.
        UnexpectedSubPeriod
            If a group has more distinct sub-periods than expected, or one
            outside the explicit expected set.
        TypeError
            If ``expected`` is a bool.
        """
        require(
            panels.state == PanelState.RAW,
            f"Completeness filter requires raw panels (state is {panels.state.value})",
            stage="panels",
        )
        ensure_columns(panels.columns, [period_column], where="panel rows")

        if isinstance(expected, bool):
            raise TypeError("expected must be a sub-period count or a collection of values, not a bool")
        if isinstance(expected, numbers.Integral):
            expected_set = None
            size = int(expected)
        else:
            expected_set = {normalize_key_value(v) for v in expected}
            size = len(expected_set)
        if size < 1:
            raise ValueError(f"Expected sub-period count must be >= 1, got {size}")

        def _check(group: PanelGroup) -> Optional[IncompletePanel]:
            column = group.rows[period_column]
            null_periods = int(column.isna().sum())
            counts = Counter(normalize_key_value(v) for v in column.dropna().tolist())

            repeated = [v for v, n in counts.items() if n > 1]
            if repeated:
                raise DuplicateSubPeriod(group.key, period_column, _ordered(repeated))

            found = set(counts)
            if expected_set is not None:
                unexpected = found - expected_set
                if unexpected:
                    raise UnexpectedSubPeriod(group.key, period_column, len(found), size,
                                              _ordered(unexpected))
            elif len(found) > size:
                raise UnexpectedSubPeriod(group.key, period_column, len(found), size)

            if null_periods == 0 and len(found) == size:
                return None
            missing = tuple(_ordered(expected_set - found)) if expected_set is not None else ()
            return IncompletePanel(group.key, len(found), size, missing, null_periods)

        verdicts = self.context.map(_check, panels.groups)

        kept, excluded = [], []
        for group, verdict in zip(panels.groups, verdicts):
            if verdict is None:
                kept.append(replace(group, state=PanelState.FILTERED))
            else:
                excluded.append(verdict)
                logger.debug(
                    "Excluding panel %r: %d of %d %r values present%s",
                    verdict.panel, verdict.found, verdict.expected, period_column,
                    f", {verdict.null_periods} null" if verdict.null_periods else "",
                )

        logger.info("Completeness filter kept %d of %d panels (%d incomplete)",
                    len(kept), len(panels.groups), len(excluded))
        return replace(
            panels,
            groups=tuple(kept),
            state=PanelState.FILTERED,
            excluded=panels.excluded + tuple(excluded),
            period_column=period_column,
        )

    # ------------------------------------------------------------------
    # Cognostics
    # ------------------------------------------------------------------

    def annotate(self, panels: PanelSet,
                 cognostics: Union[AggregationSpec, Mapping[str, Any], Iterable[Any]]) -> PanelSet:
        """Derive per-group cognostics from each group's own Summary Rows.

        Parameters
        ----------
        panels : PanelSet
            FILTERED panel set.
        cognostics : AggregationSpec, mapping or config entries
            Cognostic name -> reducer over the group's summary columns.

        Returns
        -------
        PanelSet
            ANNOTATED set.

        Raises
        ------
        ContractViolation
            If ``panels`` is not FILTERED.
        ColumnConflict
            If a cognostic name equals an existing column.
        InvalidKey
            If a cognostic reads a column that does not exist.
        """
        require(
            panels.state == PanelState.FILTERED,
            f"Cognostics require filtered panels (state is {panels.state.value})",
            stage="panels",
        )
        spec = as_aggregation_spec(cognostics)
        for name in spec.names:
            if name in panels.columns:
                raise ColumnConflict(name, "panel rows")
        ensure_columns(panels.columns, spec.fields, where="panel rows")

        def _annotate(group: PanelGroup) -> PanelGroup:
            return replace(group, state=PanelState.ANNOTATED,
                           cognostics=aggregate_frame(group.rows, spec))

        groups = self.context.map(_annotate, panels.groups)
        logger.debug("Annotated %d panels with %s", len(groups), spec.names)
        return replace(
            panels,
            groups=tuple(groups),
            state=PanelState.ANNOTATED,
            cognostic_names=tuple(spec.names),
        )

    def prepare(self, table: pd.DataFrame, panel_key: Sequence[str], period_column: str,
                expected: Union[int, Iterable[Any]],
                cognostics: Union[AggregationSpec, Mapping[str, Any], Iterable[Any]]) -> PanelSet:
        """Group, filter for completeness, and annotate in one call."""
        panels = self.group(table, panel_key)
        panels = self.filter_complete(panels, period_column, expected)
        return self.annotate(panels, cognostics)
