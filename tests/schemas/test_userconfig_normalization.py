import pytest

from dnr.schemas.param import ParamConfig
from dnr.schemas.resolve import resolve_config
from dnr.schemas.user import UserConfig

pytestmark = pytest.mark.unit


def test_uppercase_keys_are_handled():
    raw = {
        "RECORDS_PATH": "data/2008.csv",
        "PARTITION_KEYS": ["carrier", "month"],
        "MIN_COUNT": 30,
        "BASE_DIR": "/tmp/dnr_out",
    }

    user = UserConfig.model_validate(raw)

    assert user.records_path == "data/2008.csv"
    assert user.partition_keys == ["carrier", "month"]
    assert user.min_count == 30
    assert user.base_dir == "/tmp/dnr_out"


def test_unknown_keys_are_ignored():
    raw = {"PANEL_KEY": ["origin"], "RADAR_ID": "KDIX"}
    user = UserConfig.model_validate(raw)

    assert user.panel_key == ["origin"]
    # Unknown key should not become an attribute nor raise
    assert not hasattr(user, "RADAR_ID")


def test_single_column_names_become_lists():
    user = UserConfig(PARTITION_KEYS="carrier", PANEL_KEY="carrier", SORT_BY="carrier")

    assert user.partition_keys == ["carrier"]
    assert user.panel_key == ["carrier"]
    assert user.sort_by == ["carrier"]


def test_enum_like_names_are_lowercased():
    user = UserConfig(BACKEND=" Threads ", OUTPUT_FORMAT="CSV", LOG_LEVEL="debug")

    assert user.backend == "threads"
    assert user.output_format == "csv"
    assert user.log_level == "DEBUG"


def test_compact_aggregations_mapping():
    user = UserConfig(AGGREGATIONS={
        "mean_dep_delay": ("mean", "dep_delay"),
        "n": "count",
        "worst": {"op": "MAX", "field": "dep_delay"},
    })
    config = resolve_config(ParamConfig(), user)

    outputs = [(o.name, o.op, o.field) for o in config.aggregation.outputs]
    assert outputs == [
        ("mean_dep_delay", "mean", "dep_delay"),
        ("n", "count", None),
        ("worst", "max", "dep_delay"),
    ]


def test_aggregations_list_of_entries():
    user = UserConfig(AGGREGATIONS=[{"name": "n", "op": "count"}])
    config = resolve_config(ParamConfig(), user)

    assert [o.name for o in config.aggregation.outputs] == ["n"]


def test_min_count_becomes_filter_on_n():
    config = resolve_config(ParamConfig(), UserConfig(MIN_COUNT=30))

    assert config.aggregation.filter.field == "n"
    assert config.aggregation.filter.op == ">="
    assert config.aggregation.filter.value == 30


def test_min_count_field_override():
    user = UserConfig(MIN_COUNT=10, MIN_COUNT_FIELD="flights")
    config = resolve_config(ParamConfig(), user)

    assert config.aggregation.filter.field == "flights"


def test_negative_min_count_rejected():
    with pytest.raises(ValueError):
        UserConfig(MIN_COUNT=-1)


def test_cognostics_mapping():
    user = UserConfig(COGNOSTICS={"n_periods": "count", "peak": ("max", "mean_arr_delay")})
    config = resolve_config(ParamConfig(), user)

    assert [(c.name, c.op) for c in config.cognostics] == [("n_periods", "count"), ("peak", "max")]


def test_joins_replace_defaults_and_fill_in_fields():
    user = UserConfig(JOINS=[{"on": "carrier", "lookup_key": "code", "columns": ["description"]}])
    config = resolve_config(ParamConfig(), user)

    assert len(config.joins) == 1
    join = config.joins[0]
    assert join.on == "carrier"
    assert join.prefix == ""
    assert join.disambiguate is None


def test_nested_overrides_win_over_flat_aliases():
    user = UserConfig.model_validate({
        "EXPECTED_PERIODS": 12,
        "panels": {"expected_periods": [1, 2, 3, 4], "descending": True},
    })
    config = resolve_config(ParamConfig(), user)

    assert config.panels.expected_periods == [1, 2, 3, 4]
    assert config.panels.descending is True


def test_null_keys_drop():
    config = resolve_config(ParamConfig(), UserConfig(NULL_KEYS="drop"))
    assert config.partition.null_keys == "drop"
