"""
Refund Evaluator.

Two evaluations:
- evaluate: subscription refund against a plan's refund model. Windows are
  scanned ascending by `days`; the first window that is still open
  (days >= elapsed) and accepts the reason wins. Percentages are not
  monotone across windows, so a later window may refund less.
- evaluate_cancellation: booking refund against a cancellation policy's
  refund-eligibility block.
"""

import structlog

from policyengine.engine.penalties import require_amount
from policyengine.schemas.decisions import RefundVerdict
from policyengine.schemas.governance import (
    EffectiveCancellationPolicy,
    EffectiveRefundModel,
    RefundWindow,
)

logger = structlog.get_logger(__name__)

ANY_REASON = "any_reason"


def reason_matches(conditions: tuple[str, ...], reason: str) -> bool:
    """Empty conditions, or the any_reason tag, accept every reason."""
    return not conditions or ANY_REASON in conditions or reason in conditions


class RefundEvaluator:
    """Evaluates refund eligibility."""

    def evaluate(
        self,
        model: EffectiveRefundModel,
        reason: str,
        elapsed_days: float,
    ) -> RefundVerdict:
        require_amount("elapsed_days", elapsed_days)

        processing = model.processing
        window = self._select_window(model.time_windows, reason, elapsed_days)
        if window is None:
            logger.debug(
                "refund_no_window",
                plan=model.plan,
                reason=reason,
                elapsed_days=elapsed_days,
            )
            return RefundVerdict(
                eligible=False,
                percentage=0.0,
                automatic=processing.automatic,
                review_required=processing.review_required,
                timeframe_days=processing.timeframe,
                reason="no_matching_window",
            )

        return RefundVerdict(
            eligible=window.percentage > 0,
            percentage=window.percentage,
            automatic=processing.automatic,
            review_required=processing.review_required,
            timeframe_days=processing.timeframe,
            window_days=window.days,
            reason="window_matched",
        )

    def evaluate_cancellation(
        self,
        policy: EffectiveCancellationPolicy,
        reason: str,
        hours_before_event: float,
    ) -> RefundVerdict:
        """
        Refund eligibility for a cancelled booking.

        Excepted reasons (e.g. no_show) are never refunded. Otherwise a
        listed reason qualifies at any time, and any reason qualifies when
        cancelling at least `time_window` hours ahead.
        """
        require_amount("hours_before_event", hours_before_event)

        eligibility = policy.refund_eligibility
        if reason in eligibility.exceptions:
            return RefundVerdict(eligible=False, percentage=0.0, reason="excepted_reason")
        if reason in eligibility.conditions:
            return RefundVerdict(eligible=True, percentage=100.0, reason="qualifying_reason")
        if hours_before_event >= eligibility.time_window:
            return RefundVerdict(eligible=True, percentage=100.0, reason="within_time_window")
        return RefundVerdict(eligible=False, percentage=0.0, reason="outside_time_window")

    @staticmethod
    def _select_window(
        windows: tuple[RefundWindow, ...],
        reason: str,
        elapsed_days: float,
    ) -> RefundWindow | None:
        for window in sorted(windows, key=lambda w: w.days):
            if window.days >= elapsed_days and reason_matches(window.conditions, reason):
                return window
        return None
