"""Shared Pydantic base for dnr configuration and request models.

Config layers (param, user, CLI, internal) and the typed aggregation
requests built from them all derive from DnrBaseModel, so a misspelt
setting or reducer option is rejected the same way everywhere.
"""

from pydantic import BaseModel, ConfigDict


class DnrBaseModel(BaseModel):
    """Strict base model.

    Unknown fields are rejected, assignments are re-validated, enum
    members are stored as their values and surrounding whitespace is
    stripped from strings (so ``" month "`` names the ``month`` column).
    UserConfig relaxes ``extra`` to accept legacy keys.
    """

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )
