"""
Pydantic models for configuration documents and the resolution context,
plus the frozen dataclasses the engine returns as decisions.
"""

from policyengine.schemas.compliance import Compliance
from policyengine.schemas.context import ResolutionContext
from policyengine.schemas.flags import FeatureFlagSet
from policyengine.schemas.foundation import Foundation
from policyengine.schemas.governance import Governance
from policyengine.schemas.protection import Protection

__all__ = [
    "Compliance",
    "FeatureFlagSet",
    "Foundation",
    "Governance",
    "Protection",
    "ResolutionContext",
]
