"""
Decision values returned by the engine.

Every decision is a frozen dataclass created per request. `Outcome` wraps a
decision together with an optional caller error so the evaluation path never
raises for bad input.
"""

from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from policyengine.errors import InvalidContextError
from policyengine.schemas.common import FeeType
from policyengine.schemas.compliance import (
    ComplianceRequirement,
    DataResidencyRule,
    JurisdictionRule,
    PrivacyPreferences,
)
from policyengine.schemas.governance import (
    EffectiveCancellationPolicy,
    EffectiveRefundModel,
    EffectiveReschedulingPolicy,
    PenaltyTier,
)

T = TypeVar("T")


@dataclass(frozen=True)
class PenaltyQuote:
    percentage: float
    amount: float
    tier_matched: Optional[PenaltyTier]
    free_window_applied: bool = False


@dataclass(frozen=True)
class RefundVerdict:
    eligible: bool
    percentage: float
    automatic: bool = False                 # informational only
    review_required: bool = False
    timeframe_days: Optional[int] = None
    window_days: Optional[float] = None     # days of the selected window
    reason: str = ""


@dataclass(frozen=True)
class RescheduleQuote:
    allowed: bool
    fee: float
    fee_type: Optional[FeeType]
    change_number: int
    reason: str                             # "allowed" or why not
    violated_restrictions: tuple[str, ...] = ()
    unchecked_restrictions: tuple[str, ...] = ()


@dataclass(frozen=True)
class FlagDecision:
    flag_id: str
    kind: str                               # global | tiered | beta | tree
    enabled: bool
    reason: str
    unresolved_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class SignalContribution:
    signal_id: str
    calculation: str
    raw_value: Optional[float]
    normalized: float
    weight: float
    weighted_contribution: float


@dataclass(frozen=True)
class TrustScore:
    """
    Weighted trust score.

    score = Σ(weight_i × normalize_i(measurement_i)); missing measurements
    contribute 0 and are listed in `missing_signals`.
    """
    score: float                            # 0-1
    level: Optional[str]                    # None below the lowest level
    contributions: list[SignalContribution] = field(default_factory=list)
    missing_signals: tuple[str, ...] = ()
    requirements: tuple[str, ...] = ()      # gates for `level`, checked by the caller


@dataclass(frozen=True)
class LimitVerdict:
    plan: str
    quota: str
    allowed: bool
    limit: int
    usage: int
    remaining: Optional[int]                # None when unlimited
    unlimited: bool = False


@dataclass(frozen=True)
class ResolvedRateLimit:
    rule_id: str
    endpoint: str
    role: str
    limit: int
    window: int
    by_user: bool
    by_ip: bool
    unlimited: bool = False
    overridden_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class ComplianceProfile:
    """Compliance obligations for a region, narrowed to one industry."""
    region: str
    industry: Optional[str]
    data_residency: DataResidencyRule
    jurisdiction_rules: tuple[JurisdictionRule, ...] = ()
    mandatory_requirements: tuple[ComplianceRequirement, ...] = ()
    certifications: tuple[str, ...] = ()
    privacy: Optional[PrivacyPreferences] = None


@dataclass(frozen=True)
class AccessReport:
    feature_id: str
    feature_enabled: bool
    ai_enabled: bool
    cancellation_policy: Optional[EffectiveCancellationPolicy] = None
    rescheduling_policy: Optional[EffectiveReschedulingPolicy] = None
    refund_model: Optional[EffectiveRefundModel] = None
    compliance: Optional[ComplianceProfile] = None    # set when the context names a region


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """A decision value or the caller error that prevented it."""
    value: Optional[T] = None
    error: Optional[InvalidContextError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the wrapped error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
