"""ParamConfig: Expert defaults for the dnr pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

The defaults describe the classic airline on-time dataset: flights are
partitioned by route and month, summarized to a mean arrival delay,
joined to airport names, and arranged into one panel per route that must
cover all twelve months.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional, Union
from pydantic import Field, field_validator
from dnr.schemas.base import DnrBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class InputConfig(DnrBaseModel):
    """Source table locations and column normalization."""
    records_path: Optional[str] = None
    lookup_path: Optional[str] = None
    columns: Optional[list[str]] = Field(None, description="Subset of record columns to load")
    lowercase_columns: bool = True
    rename: dict[str, str] = Field(
        default_factory=lambda: {
            "uniquecarrier": "carrier",
            "arrdelay": "arr_delay",
            "depdelay": "dep_delay",
            "dayofmonth": "day_of_month",
        }
    )


class PartitionConfig(DnrBaseModel):
    """Partitioning keys."""
    keys: list[str] = Field(default_factory=lambda: ["origin", "dest", "month"], min_length=1)
    null_keys: Literal["keep", "drop"] = "keep"


class OutputFieldConfig(DnrBaseModel):
    """One aggregation output: ``name = op(field)``.

    ``op`` is validated when the request is built (AggregationSpec.from_config),
    so an unknown reducer name surfaces as UnknownReducer rather than a schema error.
    """
    name: str
    op: str
    field: Optional[str] = None

    @field_validator("op", mode="before")
    @classmethod
    def normalize_op(cls, v):
        """Normalize reducer names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class SummaryFilterConfig(DnrBaseModel):
    """Post-aggregation row filter (keep rows where ``field op value``)."""
    field: str
    op: Literal["<", "<=", ">", ">=", "==", "!="] = ">="
    value: Union[int, float, str]


class AggregationConfig(DnrBaseModel):
    """Per-partition summaries."""
    outputs: list[OutputFieldConfig] = Field(
        default_factory=lambda: [
            OutputFieldConfig(name="mean_arr_delay", op="mean", field="arr_delay"),
            OutputFieldConfig(name="n", op="count"),
        ]
    )
    filter: Optional[SummaryFilterConfig] = None
    sort_by: Optional[list[str]] = None


class JoinConfig(DnrBaseModel):
    """Left join of lookup attributes onto summary rows."""
    on: str
    lookup_key: str = "iata"
    columns: Optional[list[str]] = None
    prefix: str = ""
    disambiguate: Optional[Literal["first", "last"]] = None
    fallback_column: Optional[str] = Field(
        None, description="Joined column to fill from the raw key when unmatched"
    )


class PanelConfig(DnrBaseModel):
    """Panel grouping and completeness."""
    panel_key: list[str] = Field(default_factory=lambda: ["origin", "dest"], min_length=1)
    period_column: str = "month"
    expected_periods: Union[int, list[Union[int, str]]] = 12
    order_by: Optional[str] = None
    descending: bool = False

    @field_validator("expected_periods")
    @classmethod
    def check_expected_periods(cls, v):
        """Expected size must be positive; an explicit set must be non-empty."""
        if isinstance(v, int) and v < 1:
            raise ValueError("expected_periods must be >= 1")
        if isinstance(v, list) and not v:
            raise ValueError("expected_periods must not be empty")
        return v


class ExecutionConfig(DnrBaseModel):
    """Execution back end for per-partition work."""
    backend: Literal["sequential", "threads"] = "threads"
    max_workers: int = Field(4, ge=1)
    timeout_sec: Optional[float] = Field(None, gt=0)


class OutputConfig(DnrBaseModel):
    """Output file configuration."""
    base_dir: str = "output"
    format: Literal["parquet", "csv"] = "parquet"
    compression: Literal["snappy", "gzip", "lz4", "none"] = "snappy"
    write_summary: bool = True


class LoggingConfig(DnrBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


def _default_joins() -> list[JoinConfig]:
    return [
        JoinConfig(on="origin", columns=["airport", "city", "state"], prefix="origin_",
                   fallback_column="origin_airport"),
        JoinConfig(on="dest", columns=["airport", "city", "state"], prefix="dest_",
                   fallback_column="dest_airport"),
    ]


def _default_cognostics() -> list[OutputFieldConfig]:
    return [
        OutputFieldConfig(name="mean_delay", op="mean", field="mean_arr_delay"),
        OutputFieldConfig(name="min_delay", op="min", field="mean_arr_delay"),
        OutputFieldConfig(name="max_delay", op="max", field="mean_arr_delay"),
        OutputFieldConfig(name="n_flights", op="sum", field="n"),
        OutputFieldConfig(name="n_periods", op="count"),
    ]


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(DnrBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    input: InputConfig = Field(default_factory=InputConfig)
    partition: PartitionConfig = Field(default_factory=PartitionConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    joins: list[JoinConfig] = Field(default_factory=_default_joins)
    panels: PanelConfig = Field(default_factory=PanelConfig)
    cognostics: list[OutputFieldConfig] = Field(default_factory=_default_cognostics)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
