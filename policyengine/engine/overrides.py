"""
Override Resolver.

Merges a base policy with a partial override using a shallow field overlay:
every field explicitly set on the override replaces the base field
wholesale. Lists are replaced, never concatenated, so an override's tier
list is taken exactly as written.

Effective cancellation and rescheduling policies are validated on the way
out; a violating override raises ConfigInvalidError. The snapshot builder
resolves every (industry, plan) pair eagerly, so these errors surface at
load time rather than per request.
"""

from typing import Any, Optional

import structlog

from policyengine.errors import ConfigInvalidError
from policyengine.schemas.common import ConfigModel
from policyengine.schemas.governance import (
    CancellationPolicy,
    EffectiveCancellationPolicy,
    EffectiveRefundModel,
    EffectiveReschedulingPolicy,
    FeeStructure,
    PenaltyTier,
    RefundModel,
    ReschedulingPolicy,
)

logger = structlog.get_logger(__name__)


def overlay(base: ConfigModel, override: Optional[ConfigModel]) -> tuple[dict[str, Any], tuple[str, ...]]:
    """
    Shallow-overlay `override` onto `base`.

    Returns the merged field dict (base field names, `overrides` dropped)
    and the names of the fields the override replaced.
    """
    merged = {
        name: getattr(base, name)
        for name in type(base).model_fields
        if name != "overrides"
    }
    if override is None:
        return merged, ()

    replaced: list[str] = []
    for name in type(override).model_fields:
        if name not in override.model_fields_set:
            continue
        value = getattr(override, name)
        if value is None:
            continue
        merged[name] = value
        replaced.append(name)
    return merged, tuple(replaced)


# ── Invariants ─────────────────────────────────────────────────────────


def validate_penalty_tiers(
    tiers: tuple[PenaltyTier, ...],
    free_window: float,
    where: str,
) -> None:
    """
    Enforce the canonical tier ordering.

    - thresholds strictly decreasing
    - severity never decreases as the threshold tightens (percentage and
      minimum fee), which keeps penalties monotone in hours-before-event
    - a policy with a free window must define at least one tier
    """
    if free_window > 0 and not tiers:
        raise ConfigInvalidError(
            "Policy has a free window but no penalty tiers",
            document="governance",
            path=f"{where}.penaltyStructure",
        )

    for i in range(1, len(tiers)):
        wider, tighter = tiers[i - 1], tiers[i]
        if tighter.hours_before_event >= wider.hours_before_event:
            raise ConfigInvalidError(
                "Penalty tiers must be strictly decreasing in hoursBeforeEvent",
                document="governance",
                path=f"{where}.penaltyStructure[{i}]",
                details={
                    "previous": wider.hours_before_event,
                    "current": tighter.hours_before_event,
                },
            )
        if (
            tighter.penalty_percentage < wider.penalty_percentage
            or tighter.minimum_fee < wider.minimum_fee
        ):
            raise ConfigInvalidError(
                "Penalty severity must not decrease as the window tightens",
                document="governance",
                path=f"{where}.penaltyStructure[{i}]",
            )


def validate_fee_structure(fees: tuple[FeeStructure, ...], where: str) -> None:
    """Change numbers must start at 1 and increase by one."""
    for i, entry in enumerate(fees, start=1):
        if entry.change_number != i:
            raise ConfigInvalidError(
                f"Fee structure change numbers must be 1..n (expected {i}, got {entry.change_number})",
                document="governance",
                path=f"{where}.feeStructure[{i - 1}]",
            )


# ── Resolver ───────────────────────────────────────────────────────────


class OverrideResolver:
    """Produces effective policies for (industry, plan) pairs."""

    def resolve_cancellation_policy(
        self, policy: CancellationPolicy, plan: str,
    ) -> EffectiveCancellationPolicy:
        merged, replaced = overlay(policy, policy.overrides.get(plan))
        validate_penalty_tiers(
            merged["penalty_structure"],
            merged["free_window"],
            where=f"cancellationPolicies.{policy.industry_id}"
            + (f".overrides.{plan}" if replaced else ""),
        )
        return EffectiveCancellationPolicy(plan=plan, overridden_fields=replaced, **merged)

    def resolve_rescheduling_policy(
        self, policy: ReschedulingPolicy, plan: str,
    ) -> EffectiveReschedulingPolicy:
        merged, replaced = overlay(policy, policy.overrides.get(plan))
        validate_fee_structure(
            merged["fee_structure"],
            where=f"reschedulingPolicies.{policy.industry_id}"
            + (f".overrides.{plan}" if replaced else ""),
        )
        return EffectiveReschedulingPolicy(plan=plan, overridden_fields=replaced, **merged)

    def resolve_refund_model(
        self, model: RefundModel, industry: Optional[str] = None,
    ) -> EffectiveRefundModel:
        override = model.overrides.get(industry) if industry else None
        merged, replaced = overlay(model, override)
        return EffectiveRefundModel(industry_id=industry, overridden_fields=replaced, **merged)
