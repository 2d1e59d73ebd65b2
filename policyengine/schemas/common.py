"""
Shared schema base and enums.

Configuration documents keep the camelCase keys of the platform's
configuration files; Python code uses snake_case attribute names.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ConfigModel(BaseModel):
    """Immutable configuration entity."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FeeType(StrEnum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class TargetAudience(StrEnum):
    ALL = "all"
    BETA = "beta"
    PREMIUM = "premium"
    ADMIN = "admin"


class RolloutPhase(StrEnum):
    ALPHA = "alpha"
    BETA = "beta"
    RC = "rc"
    STABLE = "stable"

    @property
    def ordinal(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = [RolloutPhase.ALPHA, RolloutPhase.BETA, RolloutPhase.RC, RolloutPhase.STABLE]


class ConditionType(StrEnum):
    PLAN = "plan"
    ROLE = "role"
    STAGE = "stage"
    CUSTOM = "custom"


class ConditionOperator(StrEnum):
    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class LogicOperator(StrEnum):
    AND = "AND"
    OR = "OR"
