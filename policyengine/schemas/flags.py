"""
Feature Flag Schemas.

A flag is one of three kinds, discriminated on `kind`:
- global - on/off with a sticky percentage rollout and target audience
- tiered - independent plan / role / journey-stage access maps (AND)
- beta   - inclusion lists plus optional custom criteria and a rollout phase

Conditional logic trees gate a feature id with a flat list of conditions
combined by a single AND/OR operator.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import Field

from policyengine.schemas.common import (
    ConditionOperator,
    ConditionType,
    ConfigModel,
    LogicOperator,
    RolloutPhase,
    TargetAudience,
)


class GlobalFlag(ConfigModel):
    kind: Literal["global"] = "global"
    id: str
    description: str = ""
    enabled: bool = False
    rollout_percentage: float = Field(default=100.0, ge=0, le=100)
    target_audience: TargetAudience = TargetAudience.ALL


class TieredFlag(ConfigModel):
    kind: Literal["tiered"] = "tiered"
    id: str
    description: str = ""
    plan_access: dict[str, bool] = Field(default_factory=dict)
    role_access: dict[str, bool] = Field(default_factory=dict)
    journey_stage_access: dict[str, bool] = Field(default_factory=dict)


class BetaEligibility(ConfigModel):
    plans: frozenset[str] = frozenset()
    roles: frozenset[str] = frozenset()
    stages: frozenset[str] = frozenset()
    # field → expected value, or {"min": x, "max": y} for numeric ranges
    custom_criteria: dict[str, Any] = Field(default_factory=dict)


class BetaFlag(ConfigModel):
    kind: Literal["beta"] = "beta"
    id: str
    description: str = ""
    eligibility: BetaEligibility
    rollout_phase: RolloutPhase = RolloutPhase.BETA
    feedback: bool = False


FeatureFlag = Annotated[
    Union[GlobalFlag, TieredFlag, BetaFlag],
    Field(discriminator="kind"),
]


class LogicCondition(ConfigModel):
    type: ConditionType
    field: str
    operator: ConditionOperator
    value: Any = None


class ConditionalLogicTree(ConfigModel):
    id: str
    feature_id: str
    conditions: tuple[LogicCondition, ...] = ()
    operator: LogicOperator = LogicOperator.AND
    fallback: bool = False


class FeatureFlagSet(ConfigModel):
    version: str
    flags: tuple[FeatureFlag, ...] = ()
    conditional_trees: tuple[ConditionalLogicTree, ...] = ()
