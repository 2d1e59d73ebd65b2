"""
Governance Schemas.

Operational rules: cancellation and rescheduling policies per industry
(with per-plan partial overrides) and refund models per plan (with
per-industry partial overrides).

Override models mirror their base model with every field optional. A field
that is set (even to an empty list) replaces the base field wholesale when
resolved; unset fields fall through to the base.
"""

from typing import Optional

from pydantic import Field

from policyengine.schemas.common import ConfigModel, FeeType


# ── Cancellation ───────────────────────────────────────────────────────


class PenaltyTier(ConfigModel):
    """
    Penalty applied to cancellations made `hours_before_event` hours or
    less before the event.
    """
    hours_before_event: float = Field(ge=0)
    penalty_percentage: float = Field(ge=0, le=100)
    minimum_fee: float = Field(default=0.0, ge=0)


class RefundEligibility(ConfigModel):
    time_window: float = Field(default=0.0, ge=0)    # hours
    conditions: tuple[str, ...] = ()
    exceptions: tuple[str, ...] = ()


class CancellationOverride(ConfigModel):
    free_window: Optional[float] = Field(default=None, ge=0)
    penalty_structure: Optional[tuple[PenaltyTier, ...]] = None
    refund_eligibility: Optional[RefundEligibility] = None


class CancellationPolicy(ConfigModel):
    industry_id: str
    free_window: float = Field(ge=0)                 # hours
    penalty_structure: tuple[PenaltyTier, ...] = ()  # strictly descending
    refund_eligibility: RefundEligibility = RefundEligibility()
    overrides: dict[str, CancellationOverride] = Field(default_factory=dict)


class EffectiveCancellationPolicy(ConfigModel):
    """Cancellation policy for one (industry, plan) pair after overlay."""
    industry_id: str
    plan: str
    free_window: float
    penalty_structure: tuple[PenaltyTier, ...]
    refund_eligibility: RefundEligibility
    overridden_fields: tuple[str, ...] = ()


# ── Rescheduling ───────────────────────────────────────────────────────


class FeeStructure(ConfigModel):
    change_number: int = Field(ge=1)
    fee: float = Field(ge=0)
    fee_type: FeeType = FeeType.FIXED


class ReschedulingOverride(ConfigModel):
    allowed_changes: Optional[int] = Field(default=None, ge=0)
    time_window: Optional[float] = Field(default=None, ge=0)
    fee_structure: Optional[tuple[FeeStructure, ...]] = None
    restrictions: Optional[tuple[str, ...]] = None


class ReschedulingPolicy(ConfigModel):
    industry_id: str
    allowed_changes: int = Field(ge=0)
    time_window: float = Field(ge=0)                 # hours
    fee_structure: tuple[FeeStructure, ...] = ()
    restrictions: tuple[str, ...] = ()
    overrides: dict[str, ReschedulingOverride] = Field(default_factory=dict)


class EffectiveReschedulingPolicy(ConfigModel):
    industry_id: str
    plan: str
    allowed_changes: int
    time_window: float
    fee_structure: tuple[FeeStructure, ...]
    restrictions: tuple[str, ...]
    overridden_fields: tuple[str, ...] = ()


# ── Refunds ────────────────────────────────────────────────────────────


class RefundWindow(ConfigModel):
    days: float = Field(ge=0)
    percentage: float = Field(ge=0, le=100)
    conditions: tuple[str, ...] = ()                 # empty = any reason


class RefundProcessing(ConfigModel):
    automatic: bool = False
    review_required: bool = True
    timeframe: int = Field(default=7, ge=0)          # days


class RefundOverride(ConfigModel):
    time_windows: Optional[tuple[RefundWindow, ...]] = None
    conditions: Optional[tuple[str, ...]] = None
    processing: Optional[RefundProcessing] = None


class RefundModel(ConfigModel):
    plan: str
    time_windows: tuple[RefundWindow, ...] = ()
    conditions: tuple[str, ...] = ()
    processing: RefundProcessing = RefundProcessing()
    overrides: dict[str, RefundOverride] = Field(default_factory=dict)


class EffectiveRefundModel(ConfigModel):
    plan: str
    industry_id: Optional[str] = None
    time_windows: tuple[RefundWindow, ...]
    conditions: tuple[str, ...]
    processing: RefundProcessing
    overridden_fields: tuple[str, ...] = ()


# ── Document ───────────────────────────────────────────────────────────


class Governance(ConfigModel):
    version: str
    cancellation_policies: dict[str, CancellationPolicy]
    rescheduling_policies: dict[str, ReschedulingPolicy] = Field(default_factory=dict)
    refund_models: dict[str, RefundModel] = Field(default_factory=dict)
