"""Typed aggregation requests.

An aggregation request maps output field names to one of a small, closed set
of reducer operations. Requests are validated when they are constructed, so a
malformed request fails before any partition is touched:

- no outputs                      -> EmptyAggregationSpec
- reducer name outside the set    -> UnknownReducer
- missing input field for a reducer that needs one -> pydantic ValidationError

Reducer semantics
-----------------
Every reducer receives only the non-null values of its input field within one
partition (or panel group), plus the number of rows in that unit.

============  ===========================================================
``mean``      exact sum / count of non-null values (``math.fsum``)
``count``     number of rows (no field) or non-null values (with field)
``min``       smallest non-null value
``max``       largest non-null value
``sum``       sum of non-null values
``custom``    caller-supplied associative binary reducer, folded over values
============  ===========================================================

With zero non-null values every reducer except ``count`` returns ``None``.
"""

import functools
import math
import operator
from typing import Annotated, Any, Callable, Iterable, Literal, Mapping, Optional, Union

from pydantic import ConfigDict, Field, model_validator

from dnr.core.errors import ColumnConflict, EmptyAggregationSpec, UnknownReducer
from dnr.schemas.base import DnrBaseModel

__all__ = [
    'MeanOp',
    'CountOp',
    'MinOp',
    'MaxOp',
    'SumOp',
    'CustomOp',
    'AggregationOp',
    'AggregationSpec',
    'SummaryFilter',
    'REDUCERS',
]


# =============================================================================
# Reducer variants
# =============================================================================

class _ReducerOp(DnrBaseModel):
    """Common base for reducer variants (immutable once built)."""

    model_config = ConfigDict(frozen=True)

    def reduce(self, values: list, n_rows: int) -> Any:
        raise NotImplementedError


class MeanOp(_ReducerOp):
    """Arithmetic mean over non-null values."""
    op: Literal["mean"] = "mean"
    field: str

    def reduce(self, values: list, n_rows: int) -> Optional[float]:
        if not values:
            return None
        return math.fsum(float(v) for v in values) / len(values)


class CountOp(_ReducerOp):
    """Row count, or non-null count of ``field`` when one is given."""
    op: Literal["count"] = "count"
    field: Optional[str] = None

    def reduce(self, values: list, n_rows: int) -> int:
        if self.field is None:
            return int(n_rows)
        return len(values)


class MinOp(_ReducerOp):
    """Smallest non-null value."""
    op: Literal["min"] = "min"
    field: str

    def reduce(self, values: list, n_rows: int) -> Any:
        return min(values) if values else None


class MaxOp(_ReducerOp):
    """Largest non-null value."""
    op: Literal["max"] = "max"
    field: str

    def reduce(self, values: list, n_rows: int) -> Any:
        return max(values) if values else None


class SumOp(_ReducerOp):
    """Sum of non-null values (integers stay integers)."""
    op: Literal["sum"] = "sum"
    field: str

    def reduce(self, values: list, n_rows: int) -> Any:
        if not values:
            return None
        if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
            return sum(values)
        return math.fsum(float(v) for v in values)


class CustomOp(_ReducerOp):
    """Caller-supplied associative binary reducer.

    The reducer is folded left over the non-null values. It must be
    associative so that the result does not depend on how values are
    grouped; it is not required to be commutative, but callers who want
    order-independent results should supply one that is.

    Examples
    --------
    >>> CustomOp(field="delay", reducer=lambda a, b: a if abs(a) >= abs(b) else b)
    """
    op: Literal["custom"] = "custom"
    field: str
    reducer: Callable[[Any, Any], Any]

    def reduce(self, values: list, n_rows: int) -> Any:
        if not values:
            return None
        return functools.reduce(self.reducer, values)


AggregationOp = Annotated[
    Union[MeanOp, CountOp, MinOp, MaxOp, SumOp, CustomOp],
    Field(discriminator="op"),
]

REDUCERS = {
    "mean": MeanOp,
    "count": CountOp,
    "min": MinOp,
    "max": MaxOp,
    "sum": SumOp,
    "custom": CustomOp,
}


def _normalize_entry(name: str, entry: Any) -> Any:
    """Turn one loosely written output entry into a validated reducer input.

    Accepted forms: a reducer instance, ``"count"``, ``("mean", "delay")``,
    ``("custom", "delay", fn)`` or ``{"op": "mean", "field": "delay"}``.
    """
    if isinstance(entry, _ReducerOp):
        return entry

    if isinstance(entry, str):
        data = {"op": entry}
    elif isinstance(entry, (tuple, list)):
        if not entry:
            raise UnknownReducer(name, repr(entry), REDUCERS)
        data = {"op": entry[0]}
        if len(entry) > 1:
            data["field"] = entry[1]
        if len(entry) > 2:
            data["reducer"] = entry[2]
    elif isinstance(entry, Mapping):
        data = dict(entry)
    else:
        raise UnknownReducer(name, type(entry).__name__, REDUCERS)

    op = data.get("op")
    if isinstance(op, str):
        op = op.lower().strip()
        data["op"] = op
    if op not in REDUCERS:
        raise UnknownReducer(name, str(op), REDUCERS)

    # entries coming from config carry field=None for "count"
    if data.get("field") is None:
        data.pop("field", None)
    return data


# =============================================================================
# Aggregation request
# =============================================================================

class AggregationSpec(DnrBaseModel):
    """Mapping from output field name to a typed reducer.

    Used by the Recombiner (one summary row per partition) and by the Panel
    Preparer for cognostics (one set of values per panel group).

    Examples
    --------
    >>> spec = AggregationSpec.of(mean_delay=("mean", "delay"), n="count")
    >>> spec.names
    ['mean_delay', 'n']
    >>> spec.fields
    ['delay']
    """

    model_config = ConfigDict(frozen=True)

    outputs: dict[str, AggregationOp]

    @model_validator(mode="before")
    @classmethod
    def normalize_outputs(cls, data):
        """Reject empty requests and unknown reducers before field validation."""
        if isinstance(data, Mapping):
            outputs = data.get("outputs")
        else:
            outputs = data
        if not outputs:
            raise EmptyAggregationSpec()
        if not isinstance(outputs, Mapping):
            raise EmptyAggregationSpec(
                f"Aggregation outputs must be a mapping, got {type(outputs).__name__}"
            )

        normalized = {}
        for name, entry in outputs.items():
            if not isinstance(name, str) or not name.strip():
                raise EmptyAggregationSpec(f"Output field names must be non-empty strings, got {name!r}")
            normalized[name.strip()] = _normalize_entry(name, entry)
        return {"outputs": normalized}

    @classmethod
    def of(cls, **outputs: Any) -> "AggregationSpec":
        """Build a spec from keyword arguments (output name -> entry)."""
        return cls(outputs=outputs)

    @classmethod
    def from_config(cls, entries: Iterable[Any]) -> "AggregationSpec":
        """Build a spec from config entries with ``name``, ``op`` and ``field``.

        Raises
        ------
        ColumnConflict
            If two entries share the same output name.
        """
        outputs = {}
        for entry in entries:
            if not isinstance(entry, Mapping):
                entry = entry.model_dump()
            name = entry["name"]
            if name in outputs:
                raise ColumnConflict(name, "aggregation outputs")
            outputs[name] = {"op": entry["op"], "field": entry.get("field")}
        return cls(outputs=outputs)

    @property
    def names(self) -> list[str]:
        """Output field names in request order."""
        return list(self.outputs)

    @property
    def fields(self) -> list[str]:
        """Distinct input fields read by this request, in first-use order."""
        seen = []
        for op in self.outputs.values():
            if op.field is not None and op.field not in seen:
                seen.append(op.field)
        return seen

    def items(self):
        return self.outputs.items()

    def __len__(self) -> int:
        return len(self.outputs)


# =============================================================================
# Post-aggregation filter
# =============================================================================

_COMPARATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


class SummaryFilter(DnrBaseModel):
    """Keep summary rows whose ``field`` satisfies ``op value``.

    Applied by the Recombiner after every partition has been aggregated,
    never before. Rows whose field is null never satisfy the filter.

    Examples
    --------
    >>> keep = SummaryFilter.min_count("n", 30)   # drop rows where n < 30
    >>> keep({"n": 12})
    False
    """

    model_config = ConfigDict(frozen=True)

    field: str
    op: Literal["<", "<=", ">", ">=", "==", "!="]
    value: Union[int, float, str]

    @classmethod
    def min_count(cls, field: str, n: int) -> "SummaryFilter":
        return cls(field=field, op=">=", value=n)

    def __call__(self, row: Mapping[str, Any]) -> bool:
        v = row.get(self.field)
        if v is None or (isinstance(v, float) and math.isnan(v)):
            return False
        return bool(_COMPARATORS[self.op](v, self.value))
