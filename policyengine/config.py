"""
Policy Engine Configuration.

Pydantic Settings v2 - loads from .env, environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from policyengine.schemas.common import RolloutPhase


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "Booking Policy Engine"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="POLICY_ENVIRONMENT")
    debug: bool = Field(default=False, alias="POLICY_DEBUG")

    # ── API ───────────────────────────────────────────────────────────────
    # Mount point of every router; /health stays at the root
    api_prefix: str = Field(default="/api/v1", alias="POLICY_API_PREFIX")

    # ── Configuration snapshot ───────────────────────────────────────────
    # Empty → packaged default documents
    config_dir: str = Field(default="", alias="POLICY_CONFIG_DIR")
    weight_tolerance: float = Field(default=1e-6, alias="POLICY_WEIGHT_TOLERANCE")

    # ── Trust scoring ─────────────────────────────────────────────────────
    response_time_scale_hours: float = Field(
        default=24.0, alias="POLICY_RESPONSE_TIME_SCALE_HOURS",
        description="Scale of the inverse-exponential response time curve",
    )
    rating_scale: float = Field(default=5.0, alias="POLICY_RATING_SCALE")

    # ── Feature flags ─────────────────────────────────────────────────────
    beta_min_phase: RolloutPhase = Field(
        default=RolloutPhase.ALPHA, alias="POLICY_BETA_MIN_PHASE",
        description="Beta flags in an earlier rollout phase evaluate false",
    )

    # ── Operational ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="POLICY_LOG_LEVEL")
    log_format: str = Field(default="json", alias="POLICY_LOG_FORMAT")


settings = Settings()
