"""
Policy Engine - single entry point for policy and feature resolution.

Each call:
1. Reads the active snapshot reference once (a reload mid-call is invisible)
2. Validates the context dimensions against the snapshot's foundation
3. Dispatches to the calculator for the question asked
4. Wraps caller errors (InvalidContextError) in an Outcome

Configuration errors are not wrapped: a store without a snapshot raises
NoSnapshotError to the caller.
"""

from typing import Any, Callable, Mapping, Optional, TypeVar

import structlog

from policyengine.config import Settings
from policyengine.engine.compliance import compliance_profile, data_residency, jurisdiction_rules
from policyengine.engine.flags import FeatureFlagEvaluator
from policyengine.engine.limits import check_limit, plan_has_feature, resolve_rate_limit
from policyengine.engine.penalties import PenaltyCalculator
from policyengine.engine.refunds import RefundEvaluator
from policyengine.engine.rescheduling import RescheduleCalculator
from policyengine.engine.trust import TrustScorer
from policyengine.errors import (
    InvalidContextError,
    UnknownDimensionError,
    UnknownFlagError,
)
from policyengine.schemas.compliance import DataResidencyRule, JurisdictionRule
from policyengine.schemas.context import ResolutionContext
from policyengine.schemas.decisions import (
    AccessReport,
    ComplianceProfile,
    FlagDecision,
    LimitVerdict,
    Outcome,
    PenaltyQuote,
    RefundVerdict,
    RescheduleQuote,
    ResolvedRateLimit,
    TrustScore,
)
from policyengine.schemas.foundation import Plan
from policyengine.schemas.governance import (
    EffectiveCancellationPolicy,
    EffectiveRefundModel,
    EffectiveReschedulingPolicy,
)
from policyengine.store.snapshot import ConfigSnapshot
from policyengine.store.store import ConfigStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PolicyEngine:
    """
    Evaluation facade over a ConfigStore.

    Stateless apart from the store reference; safe to share across threads
    and requests.
    """

    def __init__(self, store: ConfigStore, cfg: Optional[Settings] = None):
        self.store = store
        self.settings = cfg or store.settings
        self.penalties = PenaltyCalculator()
        self.refunds = RefundEvaluator()
        self.rescheduling = RescheduleCalculator()
        self.trust = TrustScorer(
            response_time_scale_hours=self.settings.response_time_scale_hours,
            rating_scale=self.settings.rating_scale,
        )
        self.min_beta_phase = self.settings.beta_min_phase

    # ── Policies ──────────────────────────────────────────────────────

    def resolve_cancellation_policy(self, industry: str, plan: str) -> Outcome[EffectiveCancellationPolicy]:
        snapshot = self.store.snapshot
        return self._guard("resolve_cancellation_policy", self._cancellation_policy, snapshot, industry, plan)

    def resolve_rescheduling_policy(self, industry: str, plan: str) -> Outcome[EffectiveReschedulingPolicy]:
        snapshot = self.store.snapshot
        return self._guard("resolve_rescheduling_policy", self._rescheduling_policy, snapshot, industry, plan)

    def resolve_refund_model(self, plan: str, industry: Optional[str] = None) -> Outcome[EffectiveRefundModel]:
        snapshot = self.store.snapshot
        return self._guard("resolve_refund_model", self._refund_model, snapshot, plan, industry)

    def quote_penalty(
        self,
        context: ResolutionContext,
        base_fee: float,
        hours_before_event: Optional[float] = None,
    ) -> Outcome[PenaltyQuote]:
        """Cancellation penalty; hours default to `context.elapsed_hours`."""
        snapshot = self.store.snapshot

        def run() -> PenaltyQuote:
            self._validate_context(snapshot, context, require_industry=True)
            policy = self._cancellation_policy(snapshot, context.industry, context.plan)
            return self.penalties.quote(policy, self._hours(context, hours_before_event), base_fee)

        return self._guard("quote_penalty", run)

    def evaluate_refund(
        self,
        context: ResolutionContext,
        reason: str,
        elapsed_days: float,
    ) -> Outcome[RefundVerdict]:
        """Refund verdict from the plan's refund model (industry override applied when set)."""
        snapshot = self.store.snapshot

        def run() -> RefundVerdict:
            self._validate_context(snapshot, context)
            model = self._refund_model(snapshot, context.plan, context.industry)
            return self.refunds.evaluate(model, reason, elapsed_days)

        return self._guard("evaluate_refund", run)

    def evaluate_cancellation_refund(
        self,
        context: ResolutionContext,
        reason: str,
        hours_before_event: Optional[float] = None,
    ) -> Outcome[RefundVerdict]:
        snapshot = self.store.snapshot

        def run() -> RefundVerdict:
            self._validate_context(snapshot, context, require_industry=True)
            policy = self._cancellation_policy(snapshot, context.industry, context.plan)
            return self.refunds.evaluate_cancellation(policy, reason, self._hours(context, hours_before_event))

        return self._guard("evaluate_cancellation_refund", run)

    def quote_reschedule(
        self,
        context: ResolutionContext,
        base_fee: float = 0.0,
        hours_before_event: Optional[float] = None,
    ) -> Outcome[RescheduleQuote]:
        """Reschedule quote for `context.change_attempt_number`."""
        snapshot = self.store.snapshot

        def run() -> RescheduleQuote:
            self._validate_context(snapshot, context, require_industry=True)
            policy = self._rescheduling_policy(snapshot, context.industry, context.plan)
            return self.rescheduling.quote(
                policy,
                self._hours(context, hours_before_event),
                context.change_attempt_number,
                base_fee=base_fee,
                custom_fields=context.custom_fields,
            )

        return self._guard("quote_reschedule", run)

    # ── Flags ─────────────────────────────────────────────────────────

    def evaluate_flag(self, flag_id: str, context: ResolutionContext) -> Outcome[bool]:
        outcome = self.explain_flag(flag_id, context)
        if not outcome.ok:
            return Outcome(error=outcome.error)
        return Outcome(value=outcome.value.enabled)

    def explain_flag(self, flag_id: str, context: ResolutionContext) -> Outcome[FlagDecision]:
        snapshot = self.store.snapshot

        def run() -> FlagDecision:
            self._validate_context(snapshot, context)
            return self._flag_decision(snapshot, flag_id, context)

        return self._guard("explain_flag", run)

    # ── Trust ─────────────────────────────────────────────────────────

    def score(self, measurements: Mapping[str, float]) -> Outcome[TrustScore]:
        """Trust score from raw measurements keyed by signal id."""
        snapshot = self.store.snapshot
        trust_flags = snapshot.foundation.trust_flags
        return self._guard(
            "score",
            self.trust.score,
            trust_flags.trust_signals,
            measurements,
            trust_flags.verification_levels,
        )

    # ── Limits ────────────────────────────────────────────────────────

    def check_limit(self, plan: str, quota: str, usage: int) -> Outcome[LimitVerdict]:
        snapshot = self.store.snapshot

        def run() -> LimitVerdict:
            if usage < 0:
                raise InvalidContextError(
                    "usage must not be negative", field="usage", details={"value": usage},
                )
            return check_limit(self._plan(snapshot, plan), quota, usage)

        return self._guard("check_limit", run)

    def plan_has_feature(self, plan: str, feature: str) -> Outcome[bool]:
        snapshot = self.store.snapshot
        return self._guard(
            "plan_has_feature", lambda: plan_has_feature(self._plan(snapshot, plan), feature),
        )

    def resolve_rate_limit(self, endpoint: str, role: str) -> Outcome[Optional[ResolvedRateLimit]]:
        snapshot = self.store.snapshot

        def run() -> Optional[ResolvedRateLimit]:
            if role not in snapshot.foundation.roles:
                raise UnknownDimensionError("role", role)
            return resolve_rate_limit(snapshot.protection.rate_limiting, endpoint, role)

        return self._guard("resolve_rate_limit", run)

    # ── Compliance ────────────────────────────────────────────────────

    def resolve_data_residency(self, region: str) -> Outcome[DataResidencyRule]:
        snapshot = self.store.snapshot
        return self._guard("resolve_data_residency", data_residency, snapshot.compliance, region)

    def resolve_jurisdiction_rules(
        self,
        region: str,
        industry: Optional[str] = None,
    ) -> Outcome[tuple[JurisdictionRule, ...]]:
        snapshot = self.store.snapshot

        def run() -> tuple[JurisdictionRule, ...]:
            if industry is not None and industry not in snapshot.foundation.industries:
                raise UnknownDimensionError("industry", industry)
            return jurisdiction_rules(snapshot.compliance, region, industry)

        return self._guard("resolve_jurisdiction_rules", run)

    def resolve_compliance(self, context: ResolutionContext) -> Outcome[ComplianceProfile]:
        """Residency, jurisdiction and privacy rules for `context.region` and industry."""
        snapshot = self.store.snapshot

        def run() -> ComplianceProfile:
            self._validate_context(snapshot, context)
            if context.region is None:
                raise InvalidContextError("region is required for this query", field="region")
            return compliance_profile(snapshot.compliance, context.region, context.industry)

        return self._guard("resolve_compliance", run)

    # ── Access report ─────────────────────────────────────────────────

    def evaluate_full_access(self, feature_id: str, context: ResolutionContext) -> Outcome[AccessReport]:
        """
        Everything a booking screen needs for one caller.

        The feature is resolved as a flag or conditional tree when one is
        registered under `feature_id`, otherwise as plan feature membership.
        Policies are included when the context names an industry, the
        compliance profile when it names a region.
        """
        snapshot = self.store.snapshot

        def run() -> AccessReport:
            self._validate_context(snapshot, context)
            plan = self._plan(snapshot, context.plan)
            if feature_id in snapshot.flags_by_id or feature_id in snapshot.trees_by_feature:
                feature_enabled = self._flag_decision(snapshot, feature_id, context).enabled
            else:
                feature_enabled = plan_has_feature(plan, feature_id)

            cancellation = rescheduling = None
            if context.industry is not None:
                cancellation = snapshot.cancellation.get((context.industry, context.plan))
                rescheduling = snapshot.rescheduling.get((context.industry, context.plan))
            refund = snapshot.refunds.get((context.plan, context.industry))
            compliance = None
            if context.region is not None:
                compliance = compliance_profile(snapshot.compliance, context.region, context.industry)

            return AccessReport(
                feature_id=feature_id,
                feature_enabled=feature_enabled,
                ai_enabled=plan.ai_access,
                cancellation_policy=cancellation,
                rescheduling_policy=rescheduling,
                refund_model=refund,
                compliance=compliance,
            )

        return self._guard("evaluate_full_access", run)

    # ── Internals ─────────────────────────────────────────────────────

    def _guard(self, operation: str, fn: Callable[..., T], *args: Any) -> Outcome[T]:
        try:
            return Outcome(value=fn(*args))
        except InvalidContextError as exc:
            logger.info(
                "invalid_context",
                operation=operation,
                code=exc.code.value,
                field=exc.field,
                error=exc.message,
            )
            return Outcome(error=exc)

    @staticmethod
    def _validate_context(
        snapshot: ConfigSnapshot,
        context: ResolutionContext,
        require_industry: bool = False,
    ) -> None:
        foundation = snapshot.foundation
        if context.plan not in foundation.plans:
            raise UnknownDimensionError("plan", context.plan)
        if context.role not in foundation.roles:
            raise UnknownDimensionError("role", context.role)
        if context.journey_stage not in foundation.journey_stages:
            raise UnknownDimensionError("journey_stage", context.journey_stage)
        if context.industry is None:
            if require_industry:
                raise InvalidContextError("industry is required for this query", field="industry")
        elif context.industry not in foundation.industries:
            raise UnknownDimensionError("industry", context.industry)
        if context.region is not None and context.region not in snapshot.compliance.data_residency:
            raise UnknownDimensionError("region", context.region)

    @staticmethod
    def _hours(context: ResolutionContext, hours_before_event: Optional[float]) -> float:
        hours = hours_before_event if hours_before_event is not None else context.elapsed_hours
        if hours is None:
            raise InvalidContextError(
                "hours_before_event is required (argument or context.elapsed_hours)",
                field="hours_before_event",
            )
        return hours

    @staticmethod
    def _plan(snapshot: ConfigSnapshot, plan: str) -> Plan:
        found = snapshot.foundation.plans.get(plan)
        if found is None:
            raise UnknownDimensionError("plan", plan)
        return found

    @staticmethod
    def _cancellation_policy(snapshot: ConfigSnapshot, industry: str, plan: str) -> EffectiveCancellationPolicy:
        if industry not in snapshot.foundation.industries:
            raise UnknownDimensionError("industry", industry)
        if plan not in snapshot.foundation.plans:
            raise UnknownDimensionError("plan", plan)
        policy = snapshot.cancellation.get((industry, plan))
        if policy is None:
            raise InvalidContextError(
                f"No cancellation policy for industry {industry}", field="industry",
            )
        return policy

    @staticmethod
    def _rescheduling_policy(snapshot: ConfigSnapshot, industry: str, plan: str) -> EffectiveReschedulingPolicy:
        if industry not in snapshot.foundation.industries:
            raise UnknownDimensionError("industry", industry)
        if plan not in snapshot.foundation.plans:
            raise UnknownDimensionError("plan", plan)
        policy = snapshot.rescheduling.get((industry, plan))
        if policy is None:
            raise InvalidContextError(
                f"No rescheduling policy for industry {industry}", field="industry",
            )
        return policy

    @staticmethod
    def _refund_model(snapshot: ConfigSnapshot, plan: str, industry: Optional[str]) -> EffectiveRefundModel:
        if plan not in snapshot.foundation.plans:
            raise UnknownDimensionError("plan", plan)
        if industry is not None and industry not in snapshot.foundation.industries:
            raise UnknownDimensionError("industry", industry)
        model = snapshot.refunds.get((plan, industry))
        if model is None:
            raise InvalidContextError(f"No refund model for plan {plan}", field="plan")
        return model

    def _flag_decision(self, snapshot: ConfigSnapshot, flag_id: str, context: ResolutionContext) -> FlagDecision:
        evaluator = FeatureFlagEvaluator(snapshot.foundation, self.min_beta_phase)
        flag = snapshot.flags_by_id.get(flag_id)
        if flag is not None:
            return evaluator.evaluate(flag, context)
        tree = snapshot.trees_by_feature.get(flag_id)
        if tree is not None:
            return evaluator.evaluate_tree(tree, context)
        raise UnknownFlagError(flag_id)
