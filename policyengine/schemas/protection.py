"""Protection Schemas - per-endpoint rate limits with per-role overrides."""

from typing import Optional

from pydantic import Field

from policyengine.schemas.common import ConfigModel


class RateLimitOverride(ConfigModel):
    limit: Optional[int] = Field(default=None, ge=-1)
    window: Optional[int] = Field(default=None, gt=0)
    by_user: Optional[bool] = None
    by_ip: Optional[bool] = None


class RateLimitRule(ConfigModel):
    id: str
    endpoint: str                          # glob pattern, e.g. /api/*
    limit: int = Field(ge=-1)              # -1 = unlimited
    window: int = Field(gt=0)              # seconds
    by_user: bool = True
    by_ip: bool = False
    overrides: dict[str, RateLimitOverride] = Field(default_factory=dict)


class Protection(ConfigModel):
    version: str
    rate_limiting: tuple[RateLimitRule, ...] = ()
