"""Configuration resolution.

``resolve_config()`` is the only way runtime code obtains configuration.
It layers the three config sources and validates the result into a frozen
InternalConfig:

    ParamConfig (expert defaults) < UserConfig (file) < CLIConfig (flags)

Nested sections merge key by key. Lists (partition keys, aggregation
outputs, joins, cognostics) are replaced wholesale by a higher layer,
never concatenated.
"""

from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel

from dnr.schemas.cli import CLIConfig
from dnr.schemas.internal import InternalConfig
from dnr.schemas.param import ParamConfig
from dnr.schemas.user import UserConfig

__all__ = ['resolve_config', 'deep_merge']

M = TypeVar("M", bound=BaseModel)


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Merge ``overrides`` into a copy of ``base``, left to right.

    Dict values merge recursively; anything else (lists included) is
    replaced. ``base`` and the overrides are not modified.

    Examples
    --------
    >>> deep_merge({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"d": 4, "e": 5}, "f": 6})
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    merged = dict(base)
    for override in overrides:
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = deep_merge(current, value)
            else:
                merged[key] = value
    return merged


def _as_layer(value: Optional[Union[dict, M]], model: Type[M]) -> M:
    """Validate one config layer; None or ``{}`` gives the empty layer."""
    if isinstance(value, model):
        return value
    return model.model_validate(value or {})


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Merge the param, user and CLI layers into a frozen InternalConfig.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert defaults. Required.
    user_cfg : dict or UserConfig, optional
        Overrides from the user config file.
    cli_cfg : dict or CLIConfig, optional
        Overrides from the command line.

    Returns
    -------
    InternalConfig

    Raises
    ------
    ValidationError
        If any layer, or the merged result, fails validation.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), UserConfig(MIN_COUNT=30, BACKEND="sequential"))
    >>> config.aggregation.filter.value
    30
    >>> config.execution.backend
    'sequential'
    """
    param = _as_layer(param_cfg, ParamConfig)
    user = _as_layer(user_cfg, UserConfig)
    cli = _as_layer(cli_cfg, CLIConfig)

    merged = deep_merge(
        param.model_dump(),
        user.to_internal_overrides(),
        cli.to_internal_overrides(),
    )
    return InternalConfig.model_validate(merged)
