"""
Compliance Schemas.

Regulatory adherence per region: where data may live and for how long,
which jurisdiction rules apply to an industry, and the consent catalogue
offered to end users.
"""

from enum import StrEnum

from pydantic import Field

from policyengine.schemas.common import ConfigModel


class RequirementType(StrEnum):
    GDPR = "gdpr"
    HIPAA = "hipaa"
    CCPA = "ccpa"
    SOX = "sox"
    PCI = "pci"
    CUSTOM = "custom"


class ImplementationLevel(StrEnum):
    BASIC = "basic"
    STANDARD = "standard"
    ENHANCED = "enhanced"


# ── Data residency ─────────────────────────────────────────────────────


class DataResidencyRule(ConfigModel):
    region: str
    data_types: tuple[str, ...] = ()
    storage_requirements: tuple[str, ...] = ()
    transfer_restrictions: tuple[str, ...] = ()
    retention_periods: dict[str, int] = Field(default_factory=dict)   # data type → days


# ── Jurisdictions ──────────────────────────────────────────────────────


class ComplianceRequirement(ConfigModel):
    id: str
    type: RequirementType
    mandatory: bool = True
    implementation_level: ImplementationLevel = ImplementationLevel.STANDARD
    audit_frequency: int = Field(gt=0)     # days between audits


class JurisdictionRule(ConfigModel):
    """Requirements a region imposes on the listed industries."""

    region: str
    industries: tuple[str, ...]
    requirements: tuple[ComplianceRequirement, ...] = ()
    certifications: tuple[str, ...] = ()
    local_partners: tuple[str, ...] = ()


# ── Privacy ────────────────────────────────────────────────────────────


class ConsentType(ConfigModel):
    id: str
    name: str
    required: bool = False
    category: str
    description: str = ""


class PrivacyPreferences(ConfigModel):
    consent_types: tuple[ConsentType, ...] = ()
    default_settings: dict[str, bool] = Field(default_factory=dict)
    granular_controls: bool = True
    withdrawal_process: str = "self_service"
    consent_refresh_period: int = Field(default=365, ge=0)  # days


# ── Document ───────────────────────────────────────────────────────────


class Compliance(ConfigModel):
    version: str
    data_residency: dict[str, DataResidencyRule] = Field(default_factory=dict)
    jurisdiction_rules: tuple[JurisdictionRule, ...] = ()
    privacy_preferences: PrivacyPreferences = Field(default_factory=PrivacyPreferences)
