"""
Reschedule Calculator.

Decides whether the Nth change of a booking is allowed and what it costs.

Restriction tags (same_provider, within_30_days, ...) are predicates the
caller answers through context custom fields: a tag present with a falsy
value is a violation; an absent tag is reported back as unchecked.
"""

from typing import Any, Mapping

import structlog

from policyengine.engine.penalties import require_amount, to_money
from policyengine.errors import InvalidContextError
from policyengine.schemas.common import FeeType
from policyengine.schemas.decisions import RescheduleQuote
from policyengine.schemas.governance import EffectiveReschedulingPolicy, FeeStructure

logger = structlog.get_logger(__name__)


class RescheduleCalculator:

    def quote(
        self,
        policy: EffectiveReschedulingPolicy,
        hours_before_event: float,
        change_attempt_number: int,
        base_fee: float = 0.0,
        custom_fields: Mapping[str, Any] | None = None,
    ) -> RescheduleQuote:
        if change_attempt_number < 1:
            raise InvalidContextError(
                "change_attempt_number is 1-based",
                field="change_attempt_number",
                details={"value": change_attempt_number},
            )
        require_amount("hours_before_event", hours_before_event)
        require_amount("base_fee", base_fee)

        custom_fields = custom_fields or {}
        violated = tuple(
            tag for tag in policy.restrictions
            if tag in custom_fields and not custom_fields[tag]
        )
        unchecked = tuple(tag for tag in policy.restrictions if tag not in custom_fields)

        if change_attempt_number > policy.allowed_changes:
            return self._denied(change_attempt_number, "change_limit_exceeded", violated, unchecked)
        if hours_before_event < policy.time_window:
            return self._denied(change_attempt_number, "inside_time_window", violated, unchecked)
        if violated:
            return self._denied(change_attempt_number, "restriction_violated", violated, unchecked)

        entry = self._fee_entry(policy.fee_structure, change_attempt_number)
        if entry is None:
            fee, fee_type = 0.0, None
        elif entry.fee_type == FeeType.PERCENTAGE:
            fee, fee_type = base_fee * (entry.fee / 100.0), entry.fee_type
        else:
            fee, fee_type = entry.fee, entry.fee_type

        logger.debug(
            "reschedule_quoted",
            industry=policy.industry_id,
            plan=policy.plan,
            change_number=change_attempt_number,
            fee=fee,
        )
        return RescheduleQuote(
            allowed=True,
            fee=to_money(fee),
            fee_type=fee_type,
            change_number=change_attempt_number,
            reason="allowed",
            unchecked_restrictions=unchecked,
        )

    @staticmethod
    def _fee_entry(fees: tuple[FeeStructure, ...], attempt: int) -> FeeStructure | None:
        """Entry for this attempt; the last entry covers attempts past the table."""
        if not fees:
            return None
        for entry in fees:
            if entry.change_number == attempt:
                return entry
        return fees[-1]

    @staticmethod
    def _denied(attempt, reason, violated, unchecked) -> RescheduleQuote:
        return RescheduleQuote(
            allowed=False,
            fee=0.0,
            fee_type=None,
            change_number=attempt,
            reason=reason,
            violated_restrictions=violated,
            unchecked_restrictions=unchecked,
        )
