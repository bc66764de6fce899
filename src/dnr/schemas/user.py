"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., RECORDS_PATH → records_path,
PANEL_KEY → panels.panel_key).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, a single column name where a list is
expected, compact aggregation entries, etc.
"""

from typing import Any, Literal, Optional, Union
from pydantic import Field, field_validator
from dnr.schemas.base import DnrBaseModel
from dnr.schemas.param import JoinConfig, OutputFieldConfig


def _as_list(v):
    """Accept a single column name where a list of names is expected."""
    if isinstance(v, str):
        return [v]
    if isinstance(v, tuple):
        return list(v)
    return v


def _outputs_to_entries(v) -> Optional[list[dict]]:
    """Normalize compact output declarations to ``[{name, op, field}, ...]``.

    Accepts either a list of dicts or a mapping of output name to
    ``"count"``, ``("mean", "arr_delay")`` or ``{"op": ..., "field": ...}``.
    """
    if v is None:
        return None
    if isinstance(v, list):
        return [OutputFieldConfig.model_validate(entry).model_dump() for entry in v]
    entries = []
    for name, entry in dict(v).items():
        if isinstance(entry, str):
            entries.append({"name": name, "op": entry, "field": None})
        elif isinstance(entry, (list, tuple)):
            entries.append({
                "name": name,
                "op": entry[0] if entry else "",
                "field": entry[1] if len(entry) > 1 else None,
            })
        else:
            entries.append({"name": name, **dict(entry)})
    return [OutputFieldConfig.model_validate(entry).model_dump() for entry in entries]


class UserInputConfig(DnrBaseModel):
    """User-facing input config."""
    records_path: Optional[str] = None
    lookup_path: Optional[str] = None
    columns: Optional[list[str]] = None
    lowercase_columns: Optional[bool] = None
    rename: Optional[dict[str, str]] = None


class UserPartitionConfig(DnrBaseModel):
    """User-facing partition config."""
    keys: Optional[list[str]] = None
    null_keys: Optional[Literal["keep", "drop"]] = None

    @field_validator("keys", mode="before")
    @classmethod
    def coerce_keys(cls, v):
        return _as_list(v)


class UserPanelConfig(DnrBaseModel):
    """User-facing panel config."""
    panel_key: Optional[list[str]] = None
    period_column: Optional[str] = None
    expected_periods: Optional[Union[int, list[Union[int, str]]]] = None
    order_by: Optional[str] = None
    descending: Optional[bool] = None

    @field_validator("panel_key", mode="before")
    @classmethod
    def coerce_panel_key(cls, v):
        return _as_list(v)


class UserExecutionConfig(DnrBaseModel):
    """User-facing execution config."""
    backend: Optional[str] = None
    max_workers: Optional[int] = None
    timeout_sec: Optional[float] = None

    @field_validator("backend", mode="before")
    @classmethod
    def normalize_backend(cls, v):
        """Normalize backend names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserOutputConfig(DnrBaseModel):
    """User-facing output config."""
    base_dir: Optional[str] = None
    format: Optional[str] = None
    compression: Optional[str] = None
    write_summary: Optional[bool] = None


class UserConfig(DnrBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    This config is converted to internal overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            RECORDS_PATH="data/2008.csv",
            LOOKUP_PATH="data/airports.csv",
            PARTITION_KEYS=["origin", "dest", "month"],
            MIN_COUNT=30,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Inputs
    records_path: Optional[str] = Field(None, alias="RECORDS_PATH")
    lookup_path: Optional[str] = Field(None, alias="LOOKUP_PATH")
    columns: Optional[list[str]] = Field(None, alias="COLUMNS")

    # Partition / aggregation (flat aliases)
    partition_keys: Optional[list[str]] = Field(None, alias="PARTITION_KEYS")
    null_keys: Optional[Literal["keep", "drop"]] = Field(None, alias="NULL_KEYS")
    aggregations: Optional[Any] = Field(None, alias="AGGREGATIONS")
    min_count: Optional[int] = Field(None, alias="MIN_COUNT", ge=0)
    min_count_field: Optional[str] = Field(None, alias="MIN_COUNT_FIELD")
    sort_by: Optional[list[str]] = Field(None, alias="SORT_BY")

    # Panels (flat aliases)
    panel_key: Optional[list[str]] = Field(None, alias="PANEL_KEY")
    period_column: Optional[str] = Field(None, alias="PERIOD_COLUMN")
    expected_periods: Optional[Union[int, list[Union[int, str]]]] = Field(None, alias="EXPECTED_PERIODS")
    order_panels_by: Optional[str] = Field(None, alias="ORDER_PANELS_BY")
    cognostics: Optional[Any] = Field(None, alias="COGNOSTICS")
    joins: Optional[list[dict[str, Any]]] = Field(None, alias="JOINS")

    # Execution / output / logging (flat aliases)
    backend: Optional[str] = Field(None, alias="BACKEND")
    max_workers: Optional[int] = Field(None, alias="MAX_WORKERS")
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    output_format: Optional[str] = Field(None, alias="OUTPUT_FORMAT")
    log_level: Optional[str] = Field(None, alias="LOG_LEVEL")

    # Nested overrides (advanced users)
    input: Optional[UserInputConfig] = None
    partition: Optional[UserPartitionConfig] = None
    panels: Optional[UserPanelConfig] = None
    execution: Optional[UserExecutionConfig] = None
    output: Optional[UserOutputConfig] = None

    model_config = DnrBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("partition_keys", "panel_key", "sort_by", "columns", mode="before")
    @classmethod
    def coerce_column_lists(cls, v):
        """Accept a single column name for list-valued settings."""
        return _as_list(v)

    @field_validator("backend", "output_format", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize enum-like names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        # Input section
        input_cfg = {}
        if self.records_path is not None:
            input_cfg["records_path"] = self.records_path
        if self.lookup_path is not None:
            input_cfg["lookup_path"] = self.lookup_path
        if self.columns is not None:
            input_cfg["columns"] = self.columns
        if self.input is not None:
            input_cfg.update(self.input.model_dump(exclude_none=True))
        if input_cfg:
            overrides["input"] = input_cfg

        # Partition section
        partition = {}
        if self.partition_keys is not None:
            partition["keys"] = self.partition_keys
        if self.null_keys is not None:
            partition["null_keys"] = self.null_keys
        if self.partition is not None:
            partition.update(self.partition.model_dump(exclude_none=True))
        if partition:
            overrides["partition"] = partition

        # Aggregation section
        aggregation = {}
        outputs = _outputs_to_entries(self.aggregations)
        if outputs is not None:
            aggregation["outputs"] = outputs
        if self.min_count is not None:
            aggregation["filter"] = {
                "field": self.min_count_field or "n",
                "op": ">=",
                "value": self.min_count,
            }
        if self.sort_by is not None:
            aggregation["sort_by"] = self.sort_by
        if aggregation:
            overrides["aggregation"] = aggregation

        # Joins replace the default list wholesale
        if self.joins is not None:
            overrides["joins"] = [JoinConfig.model_validate(j).model_dump() for j in self.joins]

        # Panels section
        panels = {}
        if self.panel_key is not None:
            panels["panel_key"] = self.panel_key
        if self.period_column is not None:
            panels["period_column"] = self.period_column
        if self.expected_periods is not None:
            panels["expected_periods"] = self.expected_periods
        if self.order_panels_by is not None:
            panels["order_by"] = self.order_panels_by
        if self.panels is not None:
            panels.update(self.panels.model_dump(exclude_none=True))
        if panels:
            overrides["panels"] = panels

        cognostics = _outputs_to_entries(self.cognostics)
        if cognostics is not None:
            overrides["cognostics"] = cognostics

        # Execution section
        execution = {}
        if self.backend is not None:
            execution["backend"] = self.backend
        if self.max_workers is not None:
            execution["max_workers"] = self.max_workers
        if self.execution is not None:
            execution.update(self.execution.model_dump(exclude_none=True))
        if execution:
            overrides["execution"] = execution

        # Output section
        output = {}
        if self.base_dir is not None:
            output["base_dir"] = str(self.base_dir)
        if self.output_format is not None:
            output["format"] = self.output_format
        if self.output is not None:
            output.update(self.output.model_dump(exclude_none=True))
        if output:
            overrides["output"] = output

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
