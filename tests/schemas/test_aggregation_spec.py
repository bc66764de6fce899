"""Tests for typed aggregation requests and the post-aggregation filter."""

import math

import pytest
from pydantic import ValidationError

from dnr.core.errors import ColumnConflict, EmptyAggregationSpec, UnknownReducer
from dnr.schemas import (
    AggregationSpec,
    CountOp,
    CustomOp,
    MeanOp,
    MinOp,
    SumOp,
    SummaryFilter,
)

pytestmark = pytest.mark.unit


class TestSpecConstruction:
    """Requests are validated when they are built."""

    def test_loose_forms_normalize_to_typed_ops(self):
        spec = AggregationSpec.of(
            mean_delay=("mean", "delay"),
            n="count",
            lo={"op": "min", "field": "delay"},
            hi=SumOp(field="distance"),
        )

        assert isinstance(spec.outputs["mean_delay"], MeanOp)
        assert isinstance(spec.outputs["n"], CountOp)
        assert isinstance(spec.outputs["lo"], MinOp)
        assert isinstance(spec.outputs["hi"], SumOp)
        assert spec.names == ["mean_delay", "n", "lo", "hi"]
        assert spec.fields == ["delay", "distance"]
        assert len(spec) == 4

    def test_reducer_names_are_case_insensitive(self):
        spec = AggregationSpec.of(m=("MEAN", "delay"), n=" Count ")
        assert spec.outputs["m"].op == "mean"
        assert spec.outputs["n"].field is None

    def test_empty_spec_raises(self):
        with pytest.raises(EmptyAggregationSpec):
            AggregationSpec(outputs={})
        with pytest.raises(EmptyAggregationSpec):
            AggregationSpec.of()

    def test_unknown_reducer_raises_with_context(self):
        with pytest.raises(UnknownReducer) as excinfo:
            AggregationSpec.of(p90=("quantile", "delay"))

        err = excinfo.value
        assert err.output == "p90"
        assert err.reducer == "quantile"
        assert "mean" in err.known

    def test_field_required_for_mean(self):
        """A reducer that reads a field cannot be built without one."""
        with pytest.raises(ValidationError):
            AggregationSpec.of(m="mean")

    def test_custom_requires_callable(self):
        with pytest.raises(ValidationError):
            AggregationSpec.of(c=("custom", "delay", "not callable"))

    def test_from_config_entries(self):
        spec = AggregationSpec.from_config([
            {"name": "mean_arr_delay", "op": "mean", "field": "arr_delay"},
            {"name": "n", "op": "count", "field": None},
        ])
        assert spec.names == ["mean_arr_delay", "n"]
        assert spec.fields == ["arr_delay"]

    def test_from_config_duplicate_names(self):
        with pytest.raises(ColumnConflict, match="n"):
            AggregationSpec.from_config([
                {"name": "n", "op": "count"},
                {"name": "n", "op": "sum", "field": "passengers"},
            ])

    def test_spec_is_immutable(self):
        spec = AggregationSpec.of(n="count")
        with pytest.raises(ValidationError):
            spec.outputs = {}


class TestReducers:
    """Reducer semantics over non-null values."""

    def test_mean_is_exact_and_order_independent(self):
        op = MeanOp(field="x")
        values = [1e16, 1.0, -1e16]
        assert op.reduce(values, 3) == pytest.approx(1 / 3)
        assert op.reduce(list(reversed(values)), 3) == op.reduce(values, 3)

    def test_empty_values(self):
        assert MeanOp(field="x").reduce([], 4) is None
        assert MinOp(field="x").reduce([], 4) is None
        assert SumOp(field="x").reduce([], 4) is None
        assert CustomOp(field="x", reducer=max).reduce([], 4) is None
        assert CountOp(field="x").reduce([], 4) == 0
        assert CountOp().reduce([], 4) == 4

    def test_sum_keeps_integers(self):
        assert SumOp(field="x").reduce([1, 2, 3], 3) == 6
        assert isinstance(SumOp(field="x").reduce([1, 2, 3], 3), int)
        assert SumOp(field="x").reduce([0.1, 0.2], 2) == pytest.approx(0.3)

    def test_custom_folds_left(self):
        op = CustomOp(field="x", reducer=lambda a, b: a * b)
        assert op.reduce([2, 3, 4], 3) == 24


class TestSummaryFilter:
    """Post-aggregation predicate over one summary row."""

    def test_min_count(self):
        keep = SummaryFilter.min_count("n", 30)
        assert keep({"n": 30})
        assert not keep({"n": 29})

    @pytest.mark.parametrize("op,value,expected", [
        ("<", 5, True),
        ("<=", 4, True),
        (">", 4, False),
        (">=", 4, True),
        ("==", 4, True),
        ("!=", 4, False),
    ])
    def test_comparators(self, op, value, expected):
        assert SummaryFilter(field="x", op=op, value=value)({"x": 4}) is expected

    def test_null_never_passes(self):
        keep = SummaryFilter(field="x", op="!=", value=0)
        assert not keep({"x": None})
        assert not keep({"x": math.nan})
        assert not keep({})

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationError):
            SummaryFilter(field="x", op="=>", value=1)
