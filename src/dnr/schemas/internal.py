"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional, Union
from pydantic import ConfigDict, Field
from dnr.schemas.base import DnrBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalInputConfig(DnrBaseModel):
    """Runtime input configuration.

    Note: records_path may be None when the pipeline is driven from Python
    with an in-memory DataFrame. The CLI checks it before loading.
    """
    records_path: Optional[str]
    lookup_path: Optional[str]
    columns: Optional[list[str]]
    lowercase_columns: bool
    rename: dict[str, str]


class InternalPartitionConfig(DnrBaseModel):
    """Runtime partitioning configuration."""
    keys: list[str] = Field(min_length=1)
    null_keys: Literal["keep", "drop"]


class InternalOutputFieldConfig(DnrBaseModel):
    """Runtime aggregation output entry."""
    name: str
    op: str
    field: Optional[str]


class InternalSummaryFilterConfig(DnrBaseModel):
    """Runtime post-aggregation filter."""
    field: str
    op: Literal["<", "<=", ">", ">=", "==", "!="]
    value: Union[int, float, str]


class InternalAggregationConfig(DnrBaseModel):
    """Runtime aggregation configuration."""
    outputs: list[InternalOutputFieldConfig] = Field(min_length=1)
    filter: Optional[InternalSummaryFilterConfig]
    sort_by: Optional[list[str]]


class InternalJoinConfig(DnrBaseModel):
    """Runtime join configuration."""
    on: str
    lookup_key: str
    columns: Optional[list[str]]
    prefix: str
    disambiguate: Optional[Literal["first", "last"]]
    fallback_column: Optional[str]


class InternalPanelConfig(DnrBaseModel):
    """Runtime panel configuration."""
    panel_key: list[str] = Field(min_length=1)
    period_column: str
    expected_periods: Union[int, list[Union[int, str]]]
    order_by: Optional[str]
    descending: bool


class InternalExecutionConfig(DnrBaseModel):
    """Runtime execution back end."""
    backend: Literal["sequential", "threads"]
    max_workers: int = Field(ge=1)
    timeout_sec: Optional[float]


class InternalOutputConfig(DnrBaseModel):
    """Runtime output configuration."""
    base_dir: str
    format: Literal["parquet", "csv"]
    compression: Literal["snappy", "gzip", "lz4", "none"]
    write_summary: bool


class InternalLoggingConfig(DnrBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(DnrBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.keys = config.partition.keys          # NOT .get()
            self.expected = config.panels.expected_periods

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO type checking
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    input: InternalInputConfig
    partition: InternalPartitionConfig
    aggregation: InternalAggregationConfig
    joins: list[InternalJoinConfig]
    panels: InternalPanelConfig
    cognostics: list[InternalOutputFieldConfig]
    execution: InternalExecutionConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig
    run_id: Optional[str] = None

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
