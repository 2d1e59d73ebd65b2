"""
Configuration Snapshot.

One immutable, versioned view of every configuration document plus the
indexes evaluation needs (effective policies for every (industry, plan)
pair, flags by id, trees by feature id).

build_snapshot() is the only way to create one: it validates every
cross-document invariant and resolves every override eagerly, raising
ConfigInvalidError on the first violation. A snapshot that exists is a
snapshot that passed validation.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

import structlog

from policyengine.engine.overrides import OverrideResolver
from policyengine.engine.trust import TrustScorer
from policyengine.errors import ConfigInvalidError
from policyengine.schemas.common import TargetAudience
from policyengine.schemas.compliance import Compliance
from policyengine.schemas.flags import (
    BetaFlag,
    ConditionalLogicTree,
    FeatureFlag,
    FeatureFlagSet,
    GlobalFlag,
    TieredFlag,
)
from policyengine.schemas.foundation import Foundation
from policyengine.schemas.governance import (
    EffectiveCancellationPolicy,
    EffectiveRefundModel,
    EffectiveReschedulingPolicy,
    Governance,
)
from policyengine.schemas.protection import Protection

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConfigSnapshot:
    foundation: Foundation
    governance: Governance
    feature_flags: FeatureFlagSet
    protection: Protection
    compliance: Compliance
    cancellation: Mapping[tuple[str, str], EffectiveCancellationPolicy]
    rescheduling: Mapping[tuple[str, str], EffectiveReschedulingPolicy]
    # (plan, industry); industry None = the plan's base model
    refunds: Mapping[tuple[str, str | None], EffectiveRefundModel]
    flags_by_id: Mapping[str, FeatureFlag]
    trees_by_feature: Mapping[str, ConditionalLogicTree]
    generation: int = 0
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def version(self) -> str:
        return (
            f"foundation={self.foundation.version};governance={self.governance.version};"
            f"flags={self.feature_flags.version};protection={self.protection.version};"
            f"compliance={self.compliance.version}"
        )


# ── Validation ─────────────────────────────────────────────────────────


def _validate_foundation(foundation: Foundation, scorer: TrustScorer, tolerance: float) -> None:
    priorities = [p.priority for p in foundation.plans.values()]
    if len(set(priorities)) != len(priorities):
        raise ConfigInvalidError("Plan priorities must be unique", document="foundation", path="plans")

    for key, plan in foundation.plans.items():
        if key != plan.id:
            raise ConfigInvalidError(
                f"Plan key {key} does not match id {plan.id}", document="foundation", path=f"plans.{key}",
            )
        for quota, limit in plan.limits.items():
            if limit < -1:
                raise ConfigInvalidError(
                    "Limits must be >= 0 or -1 for unlimited",
                    document="foundation", path=f"plans.{key}.limits.{quota}",
                )

    for key, role in foundation.roles.items():
        if key != role.id:
            raise ConfigInvalidError(
                f"Role key {key} does not match id {role.id}", document="foundation", path=f"roles.{key}",
            )

    for key, industry in foundation.industries.items():
        if key != industry.id:
            raise ConfigInvalidError(
                f"Industry key {key} does not match id {industry.id}",
                document="foundation", path=f"industries.{key}",
            )
        for i, bucket in enumerate(industry.price_buckets):
            if bucket.min > bucket.max:
                raise ConfigInvalidError(
                    "Price bucket min exceeds max",
                    document="foundation", path=f"industries.{key}.priceBuckets[{i}]",
                )

    signals = foundation.trust_flags.trust_signals
    if signals:
        ids = [s.id for s in signals]
        if len(set(ids)) != len(ids):
            raise ConfigInvalidError("Duplicate trust signal ids", document="foundation", path="trustFlags")
        for signal in signals:
            if not scorer.supports(signal.calculation):
                raise ConfigInvalidError(
                    f"Unknown trust calculation: {signal.calculation}",
                    document="foundation",
                    path=f"trustFlags.trustSignals.{signal.id}",
                    details={"known": sorted(scorer.calculations)},
                )
        total = math.fsum(s.weight for s in signals)
        if abs(total - 1.0) > tolerance:
            raise ConfigInvalidError(
                f"Trust signal weights sum to {total}, expected 1.0",
                document="foundation",
                path="trustFlags.trustSignals",
                details={"sum": total, "tolerance": tolerance},
            )


def _validate_governance(governance: Governance, foundation: Foundation) -> None:
    for industry, policy in governance.cancellation_policies.items():
        if industry not in foundation.industries or policy.industry_id != industry:
            raise ConfigInvalidError(
                f"Cancellation policy for unknown industry: {industry}",
                document="governance", path=f"cancellationPolicies.{industry}",
            )
        for plan in policy.overrides:
            if plan not in foundation.plans:
                raise ConfigInvalidError(
                    f"Override for unknown plan: {plan}",
                    document="governance", path=f"cancellationPolicies.{industry}.overrides.{plan}",
                )

    for industry, policy in governance.rescheduling_policies.items():
        if industry not in foundation.industries or policy.industry_id != industry:
            raise ConfigInvalidError(
                f"Rescheduling policy for unknown industry: {industry}",
                document="governance", path=f"reschedulingPolicies.{industry}",
            )
        for plan in policy.overrides:
            if plan not in foundation.plans:
                raise ConfigInvalidError(
                    f"Override for unknown plan: {plan}",
                    document="governance", path=f"reschedulingPolicies.{industry}.overrides.{plan}",
                )

    for plan, model in governance.refund_models.items():
        if plan not in foundation.plans or model.plan != plan:
            raise ConfigInvalidError(
                f"Refund model for unknown plan: {plan}",
                document="governance", path=f"refundModels.{plan}",
            )
        for industry in model.overrides:
            if industry not in foundation.industries:
                raise ConfigInvalidError(
                    f"Override for unknown industry: {industry}",
                    document="governance", path=f"refundModels.{plan}.overrides.{industry}",
                )


def _validate_flags(flags: FeatureFlagSet, foundation: Foundation) -> None:
    seen: set[str] = set()
    stages = set(foundation.journey_stages)

    def unknown(values, known, path):
        missing = sorted(set(values) - set(known))
        if missing:
            raise ConfigInvalidError(
                f"Flag references unknown values: {missing}", document="feature_flags", path=path,
            )

    for flag in flags.flags:
        if flag.id in seen:
            raise ConfigInvalidError(f"Duplicate flag id: {flag.id}", document="feature_flags", path=flag.id)
        seen.add(flag.id)

        if isinstance(flag, TieredFlag):
            unknown(flag.plan_access, foundation.plans, f"{flag.id}.planAccess")
            unknown(flag.role_access, foundation.roles, f"{flag.id}.roleAccess")
            unknown(flag.journey_stage_access, stages, f"{flag.id}.journeyStageAccess")
        elif isinstance(flag, BetaFlag):
            unknown(flag.eligibility.plans, foundation.plans, f"{flag.id}.eligibility.plans")
            unknown(flag.eligibility.roles, foundation.roles, f"{flag.id}.eligibility.roles")
            unknown(flag.eligibility.stages, stages, f"{flag.id}.eligibility.stages")
        elif isinstance(flag, GlobalFlag):
            if flag.target_audience == TargetAudience.PREMIUM and "professional" not in foundation.plans:
                raise ConfigInvalidError(
                    "Premium audience requires a professional plan",
                    document="feature_flags", path=f"{flag.id}.targetAudience",
                )

    features: set[str] = set()
    for tree in flags.conditional_trees:
        if tree.feature_id in features:
            raise ConfigInvalidError(
                f"Duplicate conditional tree for feature: {tree.feature_id}",
                document="feature_flags", path=tree.id,
            )
        features.add(tree.feature_id)


def _validate_protection(protection: Protection, foundation: Foundation) -> None:
    ids = [r.id for r in protection.rate_limiting]
    if len(set(ids)) != len(ids):
        raise ConfigInvalidError("Duplicate rate limit rule ids", document="protection", path="rateLimiting")
    for rule in protection.rate_limiting:
        for role in rule.overrides:
            if role not in foundation.roles:
                raise ConfigInvalidError(
                    f"Rate limit override for unknown role: {role}",
                    document="protection", path=f"rateLimiting.{rule.id}.overrides.{role}",
                )


def _validate_compliance(compliance: Compliance, foundation: Foundation) -> None:
    regions = compliance.data_residency
    for key, rule in regions.items():
        if key != rule.region:
            raise ConfigInvalidError(
                f"Data residency key {key} does not match region {rule.region}",
                document="compliance", path=f"dataResidency.{key}",
            )
        for data_type, days in rule.retention_periods.items():
            if days < 0:
                raise ConfigInvalidError(
                    "Retention periods must be >= 0 days",
                    document="compliance", path=f"dataResidency.{key}.retentionPeriods.{data_type}",
                )

    for i, rule in enumerate(compliance.jurisdiction_rules):
        path = f"jurisdictionRules[{i}]"
        if rule.region not in regions:
            raise ConfigInvalidError(
                f"Jurisdiction rule for unknown region: {rule.region}", document="compliance", path=path,
            )
        missing = sorted(set(rule.industries) - set(foundation.industries))
        if missing:
            raise ConfigInvalidError(
                f"Jurisdiction rule references unknown industries: {missing}",
                document="compliance", path=f"{path}.industries",
            )

    # Industries declare the regions they operate under
    for key, industry in foundation.industries.items():
        missing = sorted(set(industry.compliance_requirements) - set(regions))
        if missing:
            raise ConfigInvalidError(
                f"Industry {key} requires unknown compliance regions: {missing}",
                document="compliance", path="dataResidency",
                details={"industry": key, "regions": missing},
            )

    privacy = compliance.privacy_preferences
    consent_ids = {c.id for c in privacy.consent_types}
    if len(consent_ids) != len(privacy.consent_types):
        raise ConfigInvalidError(
            "Duplicate consent type ids", document="compliance", path="privacyPreferences.consentTypes",
        )
    for consent_id, granted in privacy.default_settings.items():
        if consent_id not in consent_ids:
            raise ConfigInvalidError(
                f"Default setting for unknown consent type: {consent_id}",
                document="compliance", path=f"privacyPreferences.defaultSettings.{consent_id}",
            )
    for consent in privacy.consent_types:
        if consent.required and privacy.default_settings.get(consent.id) is False:
            raise ConfigInvalidError(
                f"Required consent {consent.id} cannot default to false",
                document="compliance", path=f"privacyPreferences.defaultSettings.{consent.id}",
            )


# ── Builder ────────────────────────────────────────────────────────────


def build_snapshot(
    foundation: Foundation,
    governance: Governance,
    feature_flags: FeatureFlagSet,
    protection: Protection,
    compliance: Compliance,
    *,
    weight_tolerance: float = 1e-6,
    scorer: TrustScorer | None = None,
) -> ConfigSnapshot:
    """Validate the documents and build an immutable snapshot."""
    scorer = scorer or TrustScorer()
    _validate_foundation(foundation, scorer, weight_tolerance)
    _validate_governance(governance, foundation)
    _validate_flags(feature_flags, foundation)
    _validate_protection(protection, foundation)
    _validate_compliance(compliance, foundation)

    resolver = OverrideResolver()
    cancellation = {
        (industry, plan): resolver.resolve_cancellation_policy(policy, plan)
        for industry, policy in governance.cancellation_policies.items()
        for plan in foundation.plans
    }
    rescheduling = {
        (industry, plan): resolver.resolve_rescheduling_policy(policy, plan)
        for industry, policy in governance.rescheduling_policies.items()
        for plan in foundation.plans
    }
    refunds: dict[tuple[str, str | None], EffectiveRefundModel] = {}
    for plan, model in governance.refund_models.items():
        refunds[(plan, None)] = resolver.resolve_refund_model(model)
        for industry in foundation.industries:
            refunds[(plan, industry)] = resolver.resolve_refund_model(model, industry)

    snapshot = ConfigSnapshot(
        foundation=foundation,
        governance=governance,
        feature_flags=feature_flags,
        protection=protection,
        compliance=compliance,
        cancellation=MappingProxyType(cancellation),
        rescheduling=MappingProxyType(rescheduling),
        refunds=MappingProxyType(refunds),
        flags_by_id=MappingProxyType({f.id: f for f in feature_flags.flags}),
        trees_by_feature=MappingProxyType({t.feature_id: t for t in feature_flags.conditional_trees}),
    )

    logger.debug(
        "config_snapshot_built",
        version=snapshot.version,
        effective_cancellation=len(cancellation),
        flags=len(snapshot.flags_by_id),
    )
    return snapshot
