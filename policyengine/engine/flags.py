"""
Feature Flag Evaluator.

Evaluates the three flag kinds and conditional logic trees against a
ResolutionContext:
- Global: enabled AND audience matches AND sticky rollout bucket
- Tiered: plan AND role AND journey-stage access maps (missing key → off)
- Beta:   inclusion lists AND custom criteria AND rollout phase gate
- Tree:   conditions combined with a single AND/OR; missing fields are
          unresolved (false), and only an entirely unresolved tree returns
          its fallback

Rollout bucketing is a pure function of (flag_id, identity), so the same
user always lands in the same bucket.
"""

import hashlib
import math
from typing import Any, assert_never

import structlog

from policyengine.schemas.common import (
    ConditionOperator,
    ConditionType,
    LogicOperator,
    RolloutPhase,
    TargetAudience,
)
from policyengine.schemas.context import ResolutionContext
from policyengine.schemas.decisions import FlagDecision
from policyengine.schemas.flags import (
    BetaFlag,
    ConditionalLogicTree,
    FeatureFlag,
    GlobalFlag,
    LogicCondition,
    TieredFlag,
)
from policyengine.schemas.foundation import Foundation

logger = structlog.get_logger(__name__)

PREMIUM_MIN_PLAN = "professional"
ADMIN_MIN_ROLE = "org_admin"
BETA_MEMBER_FIELD = "beta_program_member"

# Anonymous callers land in the last bucket: only a 100% rollout reaches them
ANONYMOUS_BUCKET = 99

_CONTEXT_FIELDS = {
    "plan": "plan",
    "role": "role",
    "stage": "journey_stage",
    "journey_stage": "journey_stage",
    "journeyStage": "journey_stage",
    "industry": "industry",
    "identity": "identity",
}

_MISSING = object()


def hash_bucket(identity: str, flag_id: str) -> int:
    """Stable bucket in [0, 100) for an (identity, flag) pair."""
    if not identity:
        return ANONYMOUS_BUCKET
    digest = hashlib.sha256(f"{flag_id}:{identity}".encode()).hexdigest()
    return int(digest[:8], 16) % 100


def resolve_field(condition: LogicCondition, context: ResolutionContext) -> Any:
    """Value a condition reads from the context, or _MISSING."""
    if condition.type == ConditionType.PLAN:
        return context.plan
    if condition.type == ConditionType.ROLE:
        return context.role
    if condition.type == ConditionType.STAGE:
        return context.journey_stage

    if condition.field in context.custom_fields:
        return context.custom_fields[condition.field]
    attr = _CONTEXT_FIELDS.get(condition.field)
    if attr is not None:
        value = getattr(context, attr)
        if value not in (None, ""):
            return value
    return _MISSING


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def compare(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    """Apply a condition operator. Type mismatches evaluate to false."""
    if operator == ConditionOperator.EQUALS:
        return actual == expected
    if operator == ConditionOperator.CONTAINS:
        if isinstance(actual, (list, tuple, set, frozenset)):
            return expected in actual
        if isinstance(actual, str) and isinstance(expected, str):
            return expected in actual
        return False

    a, b = _as_number(actual), _as_number(expected)
    if a is None or b is None:
        return False
    if operator == ConditionOperator.GREATER_THAN:
        return a > b
    if operator == ConditionOperator.LESS_THAN:
        return a < b
    assert_never(operator)


def criterion_matches(expected: Any, actual: Any) -> bool:
    """Beta custom criterion: {"min"/"max"} range or plain equality."""
    if isinstance(expected, dict) and ({"min", "max"} & expected.keys()):
        value = _as_number(actual)
        if value is None:
            return False
        if "min" in expected and value < expected["min"]:
            return False
        if "max" in expected and value > expected["max"]:
            return False
        return True
    return actual == expected


class FeatureFlagEvaluator:
    """
    Stateless evaluator bound to one foundation document.

    The foundation supplies plan priorities and role hierarchy levels for
    audience matching.
    """

    def __init__(self, foundation: Foundation, min_beta_phase: RolloutPhase = RolloutPhase.ALPHA):
        self.foundation = foundation
        self.min_beta_phase = min_beta_phase

    def evaluate(self, flag: FeatureFlag, context: ResolutionContext) -> FlagDecision:
        if isinstance(flag, GlobalFlag):
            decision = self._evaluate_global(flag, context)
        elif isinstance(flag, TieredFlag):
            decision = self._evaluate_tiered(flag, context)
        elif isinstance(flag, BetaFlag):
            decision = self._evaluate_beta(flag, context)
        else:
            assert_never(flag)

        logger.debug(
            "flag_evaluated",
            flag_id=flag.id,
            kind=flag.kind,
            enabled=decision.enabled,
            reason=decision.reason,
        )
        return decision

    # ── Global ────────────────────────────────────────────────────────

    def _evaluate_global(self, flag: GlobalFlag, context: ResolutionContext) -> FlagDecision:
        if not flag.enabled:
            return FlagDecision(flag.id, flag.kind, False, "disabled")
        if not self.audience_matches(flag.target_audience, context):
            return FlagDecision(flag.id, flag.kind, False, "audience_mismatch")
        if hash_bucket(context.identity, flag.id) >= flag.rollout_percentage:
            return FlagDecision(flag.id, flag.kind, False, "outside_rollout")
        return FlagDecision(flag.id, flag.kind, True, "enabled")

    def audience_matches(self, audience: TargetAudience, context: ResolutionContext) -> bool:
        if audience == TargetAudience.ALL:
            return True
        if audience == TargetAudience.PREMIUM:
            plan = self.foundation.plans.get(context.plan)
            floor = self.foundation.plans.get(PREMIUM_MIN_PLAN)
            return plan is not None and floor is not None and plan.priority >= floor.priority
        if audience == TargetAudience.ADMIN:
            role = self.foundation.roles.get(context.role)
            floor = self.foundation.roles.get(ADMIN_MIN_ROLE)
            return role is not None and floor is not None and role.hierarchy_level >= floor.hierarchy_level
        if audience == TargetAudience.BETA:
            return bool(context.custom_fields.get(BETA_MEMBER_FIELD, False))
        assert_never(audience)

    # ── Tiered ────────────────────────────────────────────────────────

    def _evaluate_tiered(self, flag: TieredFlag, context: ResolutionContext) -> FlagDecision:
        checks = (
            ("plan", flag.plan_access.get(context.plan, False)),
            ("role", flag.role_access.get(context.role, False)),
            ("stage", flag.journey_stage_access.get(context.journey_stage, False)),
        )
        for dimension, allowed in checks:
            if not allowed:
                return FlagDecision(flag.id, flag.kind, False, f"{dimension}_denied")
        return FlagDecision(flag.id, flag.kind, True, "enabled")

    # ── Beta ──────────────────────────────────────────────────────────

    def _evaluate_beta(self, flag: BetaFlag, context: ResolutionContext) -> FlagDecision:
        if flag.rollout_phase.ordinal < self.min_beta_phase.ordinal:
            return FlagDecision(flag.id, flag.kind, False, "phase_gated")

        eligibility = flag.eligibility
        if context.plan not in eligibility.plans:
            return FlagDecision(flag.id, flag.kind, False, "plan_ineligible")
        if context.role not in eligibility.roles:
            return FlagDecision(flag.id, flag.kind, False, "role_ineligible")
        if context.journey_stage not in eligibility.stages:
            return FlagDecision(flag.id, flag.kind, False, "stage_ineligible")

        for name, expected in eligibility.custom_criteria.items():
            if name not in context.custom_fields:
                return FlagDecision(flag.id, flag.kind, False, "criteria_unresolved", (name,))
            if not criterion_matches(expected, context.custom_fields[name]):
                return FlagDecision(flag.id, flag.kind, False, "criteria_unmet")
        return FlagDecision(flag.id, flag.kind, True, "enabled")

    # ── Conditional trees ─────────────────────────────────────────────

    def evaluate_tree(self, tree: ConditionalLogicTree, context: ResolutionContext) -> FlagDecision:
        results: list[bool] = []
        unresolved: list[str] = []

        for condition in tree.conditions:
            actual = resolve_field(condition, context)
            if actual is _MISSING:
                unresolved.append(condition.field)
                logger.warning(
                    "condition_field_unresolved",
                    tree_id=tree.id,
                    feature_id=tree.feature_id,
                    field=condition.field,
                )
                results.append(False)
                continue
            results.append(compare(condition.operator, actual, condition.value))

        if tree.conditions and len(unresolved) == len(tree.conditions):
            return FlagDecision(tree.feature_id, "tree", tree.fallback, "fallback", tuple(unresolved))
        if not tree.conditions:
            return FlagDecision(tree.feature_id, "tree", tree.fallback, "fallback")

        if tree.operator == LogicOperator.AND:
            enabled = all(results)
        else:
            enabled = any(results)

        logger.debug(
            "tree_evaluated",
            tree_id=tree.id,
            feature_id=tree.feature_id,
            enabled=enabled,
            unresolved=len(unresolved),
        )
        return FlagDecision(
            tree.feature_id,
            "tree",
            enabled,
            "conditions_met" if enabled else "conditions_unmet",
            tuple(unresolved),
        )
