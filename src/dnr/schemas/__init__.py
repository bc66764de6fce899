"""Pydantic schemas for the dnr pipeline.

This module provides strictly typed configuration models and the typed
aggregation requests built from them. All configuration validation,
coercion, and normalization happens at schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
AggregationSpec, SummaryFilter : class
    Typed aggregation request and post-aggregation filter
"""

from dnr.schemas.resolve import resolve_config
from dnr.schemas.internal import InternalConfig
from dnr.schemas.param import ParamConfig
from dnr.schemas.user import UserConfig
from dnr.schemas.cli import CLIConfig
from dnr.schemas.aggregation import (
    AggregationSpec,
    SummaryFilter,
    MeanOp,
    CountOp,
    MinOp,
    MaxOp,
    SumOp,
    CustomOp,
    REDUCERS,
)

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
    'AggregationSpec',
    'SummaryFilter',
    'MeanOp',
    'CountOp',
    'MinOp',
    'MaxOp',
    'SumOp',
    'CustomOp',
    'REDUCERS',
]
