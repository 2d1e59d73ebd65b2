"""
Cancellation Penalty Calculator.

A tier with threshold T covers cancellations made T hours or less before
the event. The applicable tier is the tightest covering window: the tier
with the smallest threshold that is still >= the actual hours-before-event.

  free window 24h, tiers 24/0%, 12/50% ($25 min), 2/100% ($50 min)
    cancel at 30h → free
    cancel at 5h  → 12h tier → max($25, 50% of fee)
    cancel at 1h  → 2h tier  → max($50, 100% of fee)

Cancelling later than the smallest threshold falls under that smallest
(most severe) tier. Hours above every threshold but still inside the free
window fall under the widest (least severe) tier.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

import structlog

from policyengine.errors import InvalidContextError
from policyengine.schemas.decisions import PenaltyQuote
from policyengine.schemas.governance import EffectiveCancellationPolicy, PenaltyTier

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


def require_amount(field: str, value: float) -> None:
    """Reject negative and non-finite hours, fees and day counts."""
    if not math.isfinite(value):
        raise InvalidContextError(
            f"{field} must be a finite number",
            field=field,
            details={"value": str(value)},
        )
    if value < 0:
        raise InvalidContextError(
            f"{field} must not be negative",
            field=field,
            details={"value": value},
        )


def to_money(value: float) -> float:
    """Round a currency amount to cents, half-up."""
    if not math.isfinite(value):
        raise InvalidContextError(
            "amount is out of range", field="amount", details={"value": str(value)},
        )
    amount = Decimal(str(value))
    with localcontext() as ctx:
        # quantize needs every integer digit plus the two decimals
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


def select_tier(tiers: tuple[PenaltyTier, ...], hours_before_event: float) -> Optional[PenaltyTier]:
    """Tightest covering tier; `tiers` must be strictly descending."""
    if not tiers:
        return None
    covering = [t for t in tiers if t.hours_before_event >= hours_before_event]
    if covering:
        return covering[-1]
    return tiers[0]


class PenaltyCalculator:
    """Quotes cancellation penalties from an effective policy."""

    def quote(
        self,
        policy: EffectiveCancellationPolicy,
        hours_before_event: float,
        base_fee: float,
    ) -> PenaltyQuote:
        require_amount("hours_before_event", hours_before_event)
        require_amount("base_fee", base_fee)

        if hours_before_event >= policy.free_window:
            return PenaltyQuote(
                percentage=0.0, amount=0.0, tier_matched=None, free_window_applied=True,
            )

        tier = select_tier(policy.penalty_structure, hours_before_event)
        if tier is None:
            # Policy built outside a validated snapshot with no tiers
            return PenaltyQuote(percentage=0.0, amount=0.0, tier_matched=None)

        amount = max(tier.minimum_fee, base_fee * (tier.penalty_percentage / 100.0))
        quote = PenaltyQuote(
            percentage=tier.penalty_percentage,
            amount=to_money(amount),
            tier_matched=tier,
        )

        logger.debug(
            "penalty_quoted",
            industry=policy.industry_id,
            plan=policy.plan,
            hours_before_event=hours_before_event,
            tier_hours=tier.hours_before_event,
            percentage=quote.percentage,
            amount=quote.amount,
        )
        return quote
