"""
Resolution Context.

Ephemeral per-request value describing who is asking and about what.
Never persisted; built by the caller for each query.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ResolutionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: str = Field(default="", description="Stable user id used for rollout bucketing")
    industry: Optional[str] = None
    region: Optional[str] = Field(default=None, description="Compliance region, e.g. us or eu")
    plan: str
    role: str
    journey_stage: str
    now: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    elapsed_hours: Optional[float] = Field(
        default=None, description="Hours remaining before the booked event",
    )
    change_attempt_number: int = 1
    custom_fields: dict[str, Any] = Field(default_factory=dict)
