"""
API Request Schemas.

Request bodies use snake_case field names. Decision values are returned as
plain JSON through `dump()`.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, FiniteFloat, TypeAdapter

from policyengine.schemas.context import ResolutionContext


class ContextBody(BaseModel):
    """Resolution context as sent by callers."""

    identity: str = ""
    industry: Optional[str] = None
    region: Optional[str] = None
    plan: str
    role: str
    journey_stage: str
    elapsed_hours: Optional[FiniteFloat] = None
    change_attempt_number: int = 1
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    def to_context(self) -> ResolutionContext:
        return ResolutionContext(**self.model_dump())


class PenaltyQuoteRequest(BaseModel):
    context: ContextBody
    base_fee: FiniteFloat
    hours_before_event: Optional[FiniteFloat] = Field(
        default=None, description="Defaults to context.elapsed_hours",
    )


class RefundRequest(BaseModel):
    """
    Refund query.

    With `elapsed_days` the plan's refund model is evaluated; without it the
    cancellation policy's refund eligibility is evaluated using
    `hours_before_event` (or context.elapsed_hours).
    """

    context: ContextBody
    reason: str
    elapsed_days: Optional[FiniteFloat] = None
    hours_before_event: Optional[FiniteFloat] = None


class RescheduleQuoteRequest(BaseModel):
    context: ContextBody
    base_fee: FiniteFloat = 0.0
    hours_before_event: Optional[FiniteFloat] = None


class TrustScoreRequest(BaseModel):
    measurements: dict[str, FiniteFloat] = Field(
        default_factory=dict, description="Raw measurement per trust signal id",
    )


def dump(value: Any) -> Any:
    """JSON-ready form of a decision dataclass or config model."""
    if value is None:
        return None
    return TypeAdapter(type(value)).dump_python(value, mode="json")
