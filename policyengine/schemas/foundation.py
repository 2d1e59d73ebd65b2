"""
Foundation Schemas.

Immutable platform truth: industries, plans, roles, journey stages and the
trust-flag configuration used by the trust scorer.
"""

from typing import Optional

from pydantic import Field

from policyengine.schemas.common import ConfigModel


# ── Industries ─────────────────────────────────────────────────────────


class ServiceTemplate(ConfigModel):
    id: str
    name: str
    duration: int = Field(ge=0)            # minutes
    default_price: float = Field(ge=0)
    category: str
    ai_optimizable: bool = False


class ServiceSubcategory(ConfigModel):
    id: str
    name: str
    category: str
    templates: tuple[ServiceTemplate, ...] = ()
    ai_suggestions: bool = False


class PriceBucket(ConfigModel):
    tier: str                              # budget | standard | premium | luxury
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    currency: str = "USD"


class Industry(ConfigModel):
    id: str
    name: str
    subcategories: tuple[ServiceSubcategory, ...] = ()
    price_buckets: tuple[PriceBucket, ...] = ()
    compliance_requirements: tuple[str, ...] = ()
    default_governance_rules: tuple[str, ...] = ()


# ── Plans & Roles ──────────────────────────────────────────────────────


class Plan(ConfigModel):
    """
    A subscription plan.

    Plans are ordered by `priority` (freemium < advanced < professional
    < enterprise). A limit of -1 means unlimited.
    """
    id: str
    name: str
    price: float = Field(default=0.0, ge=0)
    features: frozenset[str] = frozenset()
    limits: dict[str, int] = Field(default_factory=dict)
    ai_access: bool = False
    priority: int


class Role(ConfigModel):
    id: str
    name: str
    permissions: tuple[str, ...] = ()
    scope: str = "self"                    # platform | organization | team | self
    hierarchy_level: int


# ── Trust ──────────────────────────────────────────────────────────────


class VerificationLevel(ConfigModel):
    """
    A verification level recommended once the trust score reaches `min_score`.

    Requirements are gates checked by the caller, not by the scorer.
    """
    level: str
    requirements: tuple[str, ...] = ()
    benefits: tuple[str, ...] = ()
    validity_period: int = 365             # days
    min_score: float = Field(ge=0, le=1)


class TrustSignal(ConfigModel):
    id: str
    name: str = ""
    weight: float = Field(ge=0, le=1)
    calculation: str                       # key into the normalizer registry


class TrustFlags(ConfigModel):
    verification_levels: tuple[VerificationLevel, ...] = ()
    trust_signals: tuple[TrustSignal, ...] = ()
    scoring_algorithm: str = "weighted_average"


# ── Document ───────────────────────────────────────────────────────────


class Foundation(ConfigModel):
    version: str
    last_updated: Optional[str] = None
    industries: dict[str, Industry]
    plans: dict[str, Plan]
    roles: dict[str, Role]
    journey_stages: tuple[str, ...]
    trust_flags: TrustFlags = TrustFlags()

    def plans_by_priority(self) -> list[Plan]:
        return sorted(self.plans.values(), key=lambda p: p.priority)
