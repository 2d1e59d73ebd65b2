"""
Compliance lookups.

A region's data residency rule applies to everyone operating there. A
jurisdiction rule applies only to the industries it lists, so a lookup
without an industry matches no jurisdiction rule.
"""

from typing import Optional

from policyengine.errors import UnknownDimensionError
from policyengine.schemas.compliance import Compliance, DataResidencyRule, JurisdictionRule
from policyengine.schemas.decisions import ComplianceProfile


def data_residency(compliance: Compliance, region: str) -> DataResidencyRule:
    rule = compliance.data_residency.get(region)
    if rule is None:
        raise UnknownDimensionError("region", region)
    return rule


def jurisdiction_rules(
    compliance: Compliance,
    region: str,
    industry: Optional[str],
) -> tuple[JurisdictionRule, ...]:
    """Rules for `region` that list `industry`, in document order."""
    if region not in compliance.data_residency:
        raise UnknownDimensionError("region", region)
    if industry is None:
        return ()
    return tuple(
        rule for rule in compliance.jurisdiction_rules
        if rule.region == region and industry in rule.industries
    )


def compliance_profile(
    compliance: Compliance,
    region: str,
    industry: Optional[str],
) -> ComplianceProfile:
    residency = data_residency(compliance, region)
    rules = jurisdiction_rules(compliance, region, industry)

    mandatory = []
    certifications: list[str] = []
    for rule in rules:
        mandatory.extend(r for r in rule.requirements if r.mandatory)
        certifications.extend(c for c in rule.certifications if c not in certifications)

    return ComplianceProfile(
        region=region,
        industry=industry,
        data_residency=residency,
        jurisdiction_rules=rules,
        mandatory_requirements=tuple(mandatory),
        certifications=tuple(certifications),
        privacy=compliance.privacy_preferences,
    )
