"""Per-partition aggregation and global recombination.

The Recombiner evaluates a typed AggregationSpec independently on every
partition of a Partitioning, then merges the per-partition results into one
Summary Row table (one row per key tuple). Partition work is handed to an
ExecutionContext; results are identical whichever backend runs them.

After every partition has been aggregated, an optional post-aggregation
filter drops Summary Rows by their aggregate values (e.g. ``n >= 30``). The
filter never sees raw records, so it cannot bias means or counts.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from dnr.core.context import ExecutionContext
from dnr.core.errors import InvalidKey
from dnr.recombine.partitioner import Partitioning
from dnr.schemas.aggregation import AggregationSpec, SummaryFilter

__all__ = ['Recombiner', 'aggregate_frame', 'ensure_columns', 'as_aggregation_spec']

logger = logging.getLogger(__name__)

RowPredicate = Callable[[Mapping[str, Any]], bool]


def ensure_columns(columns: Iterable[str], names: Iterable[str], where: str) -> None:
    """Raise InvalidKey for the first of ``names`` not present in ``columns``."""
    available = list(columns)
    present = set(available)
    for name in names:
        if name not in present:
            raise InvalidKey(name, available, where=where)


def as_aggregation_spec(spec: Any) -> AggregationSpec:
    """Coerce a mapping or a list of config entries into an AggregationSpec."""
    if isinstance(spec, AggregationSpec):
        return spec
    if isinstance(spec, Mapping):
        return AggregationSpec(outputs=spec)
    return AggregationSpec.from_config(spec or [])


def _non_null(series: pd.Series) -> list:
    """Non-null values of a column as Python scalars."""
    return series.dropna().tolist()


def aggregate_frame(rows: pd.DataFrame, spec: AggregationSpec) -> Dict[str, Any]:
    """Evaluate every output of ``spec`` over one unit of rows.

    This is the pure, per-unit step shared by recombination (one partition)
    and cognostic derivation (one panel group). It reads only ``rows``.

    Parameters
    ----------
    rows : pd.DataFrame
        Rows of a single partition or panel group.
    spec : AggregationSpec
        Validated request. Input fields must exist in ``rows``.

    Returns
    -------
    dict
        Output name -> scalar, in request order.
    """
    n_rows = len(rows)
    values = {field: _non_null(rows[field]) for field in spec.fields}
    return {
        name: op.reduce(values.get(op.field, []), n_rows)
        for name, op in spec.items()
    }


class Recombiner:
    """Compute one Summary Row per partition and recombine into a table.

    Parameters
    ----------
    spec : AggregationSpec or mapping
        Output field name -> reducer. Mappings are validated on construction,
        so EmptyAggregationSpec and UnknownReducer surface here.
        Built-in reducers give the same result for any record order. A
        ``custom`` reducer is folded over values in record order, so it is
        only order independent if it is commutative as well as associative.
    context : ExecutionContext, optional
        Where per-partition work runs. Defaults to a sequential context
        owned by this Recombiner.

    Examples
    --------
    >>> spec = AggregationSpec.of(mean_delay=("mean", "delay"), n="count")
    >>> parts = Partitioner(["carrier"]).partition(flights)
    >>> Recombiner(spec).recombine(parts, sort_by=["carrier"])
      carrier  mean_delay  n
    0       A        15.0  2
    1       B         5.0  1
    """

    def __init__(self, spec: Union[AggregationSpec, Mapping[str, Any]],
                 context: Optional[ExecutionContext] = None):
        self.spec = as_aggregation_spec(spec)
        self.context = context if context is not None else ExecutionContext("sequential")

    def recombine(
        self,
        partitioning: Partitioning,
        where: Optional[Union[SummaryFilter, RowPredicate]] = None,
        sort_by: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        """Aggregate each partition, then apply the global filter and sort.

        Parameters
        ----------
        partitioning : Partitioning
            Output of Partitioner.partition().
        where : SummaryFilter or callable, optional
            Post-aggregation predicate over one Summary Row (a mapping of
            column name to value). Rows for which it is False are dropped.
        sort_by : list of str, optional
            Columns to sort the result by (stable, nulls last). Without it
            the row order is unspecified.

        Returns
        -------
        pd.DataFrame
            Key columns (in partition key order) followed by output fields.

        Raises
        ------
        InvalidKey
            If an input field, filter field or sort column does not exist.
        """
        keys = list(partitioning.keys)
        frame = partitioning.frame

        ensure_columns(frame.columns, self.spec.fields, where="dataset")
        clashes = [name for name in self.spec.names if name in keys]
        if clashes:
            raise InvalidKey(clashes[0], keys, where="output names (collides with a partition key)")

        columns = keys + self.spec.names
        if isinstance(where, SummaryFilter):
            ensure_columns(columns, [where.field], where="summary rows")
        if sort_by:
            if isinstance(sort_by, str):
                sort_by = [sort_by]
            ensure_columns(columns, sort_by, where="summary rows")

        # Narrow to the columns the request reads before handing out work
        source = frame[self.spec.fields] if self.spec.fields else frame.iloc[:, :0]
        spec = self.spec

        def _summarize(item):
            key, indices = item
            row = dict(zip(keys, key))
            row.update(aggregate_frame(source.iloc[indices], spec))
            return row

        rows: List[Dict[str, Any]] = self.context.map(_summarize, list(partitioning))
        n_partitions = len(rows)

        if where is not None:
            rows = [row for row in rows if where(row)]

        summary = pd.DataFrame.from_records(rows, columns=columns)
        if sort_by:
            summary = summary.sort_values(
                list(sort_by), kind="stable", na_position="last", ignore_index=True
            )

        logger.info(
            "Recombined %d partitions into %d summary rows (%d dropped by filter)",
            n_partitions, len(summary), n_partitions - len(summary),
        )
        return summary

    def __repr__(self) -> str:
        return f"Recombiner(outputs={self.spec.names!r}, context={self.context!r})"

