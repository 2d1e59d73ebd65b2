"""
Pytest Configuration and Fixtures.

Provides:
- Validated snapshot of the packaged default documents
- Loaded ConfigStore and PolicyEngine
- ResolutionContext factory
- Raw default documents and a directory copy of them
- Policy factories for calculator tests
"""

import json
import os
from importlib import resources
from pathlib import Path

import pytest

# Set testing mode before importing settings
os.environ["POLICY_ENVIRONMENT"] = "testing"
os.environ["POLICY_LOG_FORMAT"] = "console"
os.environ.pop("POLICY_CONFIG_DIR", None)

from policyengine.config import Settings  # noqa: E402
from policyengine.engine.engine import PolicyEngine  # noqa: E402
from policyengine.schemas.compliance import Compliance  # noqa: E402
from policyengine.schemas.context import ResolutionContext  # noqa: E402
from policyengine.schemas.flags import FeatureFlagSet  # noqa: E402
from policyengine.schemas.foundation import Foundation  # noqa: E402
from policyengine.schemas.governance import (  # noqa: E402
    EffectiveCancellationPolicy,
    Governance,
    PenaltyTier,
    RefundEligibility,
)
from policyengine.schemas.protection import Protection  # noqa: E402
from policyengine.store.loader import DOCUMENTS, PackagedConfigLoader  # noqa: E402
from policyengine.store.snapshot import ConfigSnapshot, build_snapshot  # noqa: E402
from policyengine.store.store import ConfigStore  # noqa: E402


# ============================================================================
# SNAPSHOT & STORE FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return Settings()


@pytest.fixture(scope="session")
def default_loader() -> PackagedConfigLoader:
    return PackagedConfigLoader()


@pytest.fixture(scope="session")
def snapshot(default_loader) -> ConfigSnapshot:
    """Snapshot built from the packaged default documents."""
    return build_snapshot(
        default_loader.load_foundation(),
        default_loader.load_governance(),
        default_loader.load_feature_flags(),
        default_loader.load_protection(),
        default_loader.load_compliance(),
    )


@pytest.fixture
def store(default_loader, test_settings) -> ConfigStore:
    """Fresh store with the defaults loaded."""
    store = ConfigStore(loader=default_loader, cfg=test_settings)
    store.load()
    return store


@pytest.fixture
def engine(store, test_settings) -> PolicyEngine:
    return PolicyEngine(store, test_settings)


# ============================================================================
# FACTORIES
# ============================================================================


@pytest.fixture
def make_context():
    """Factory for resolution contexts with sensible defaults."""

    def _make(**overrides) -> ResolutionContext:
        values = {
            "identity": "user-123",
            "industry": "healthcare",
            "plan": "professional",
            "role": "end_user",
            "journey_stage": "active",
        }
        values.update(overrides)
        return ResolutionContext(**values)

    return _make


def default_documents() -> dict[str, dict]:
    """Packaged default documents as plain dicts, keyed by layer name."""
    return {
        name: json.loads(
            resources.files("policyengine.store").joinpath("defaults").joinpath(filename).read_text(encoding="utf-8")
        )
        for name, filename in DOCUMENTS.items()
    }


def build_from(documents: dict[str, dict], **kwargs) -> ConfigSnapshot:
    """Validate raw documents and build a snapshot."""
    return build_snapshot(
        Foundation.model_validate(documents["foundation"]),
        Governance.model_validate(documents["governance"]),
        FeatureFlagSet.model_validate(documents["feature_flags"]),
        Protection.model_validate(documents["protection"]),
        Compliance.model_validate(documents["compliance"]),
        **kwargs,
    )


def write_documents(path: Path, documents: dict[str, dict]) -> None:
    for name, filename in DOCUMENTS.items():
        (path / filename).write_text(json.dumps(documents[name], indent=2), encoding="utf-8")


@pytest.fixture
def documents() -> dict[str, dict]:
    return default_documents()


@pytest.fixture
def config_dir(tmp_path, documents) -> Path:
    """Directory holding a copy of the default documents."""
    write_documents(tmp_path, documents)
    return tmp_path


def healthcare_policy(plan: str = "test") -> EffectiveCancellationPolicy:
    """Base healthcare cancellation policy (24 h free window, three tiers)."""
    return EffectiveCancellationPolicy(
        industry_id="healthcare",
        plan=plan,
        free_window=24,
        penalty_structure=(
            PenaltyTier(hours_before_event=24, penalty_percentage=0, minimum_fee=0),
            PenaltyTier(hours_before_event=12, penalty_percentage=50, minimum_fee=25),
            PenaltyTier(hours_before_event=2, penalty_percentage=100, minimum_fee=50),
        ),
        refund_eligibility=RefundEligibility(
            time_window=24,
            conditions=("medical_emergency", "provider_cancellation"),
            exceptions=("no_show", "repeated_cancellations"),
        ),
    )


@pytest.fixture
def healthcare():
    return healthcare_policy()
