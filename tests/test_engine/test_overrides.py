"""
Override Resolver Tests.
"""

import pytest

from policyengine.engine.overrides import (
    OverrideResolver,
    overlay,
    validate_fee_structure,
    validate_penalty_tiers,
)
from policyengine.errors import ConfigInvalidError
from policyengine.schemas.governance import (
    CancellationOverride,
    CancellationPolicy,
    FeeStructure,
    PenaltyTier,
    RefundModel,
    RefundOverride,
    RefundWindow,
    ReschedulingOverride,
    ReschedulingPolicy,
)
from policyengine.schemas.protection import RateLimitOverride, RateLimitRule


def tier(hours, pct, fee=0.0):
    return PenaltyTier(hours_before_event=hours, penalty_percentage=pct, minimum_fee=fee)


BASE_TIERS = (tier(24, 0), tier(12, 50, 25), tier(2, 100, 50))


class TestOverlay:
    """Shallow field overlay."""

    def test_no_override_returns_base_fields(self):
        """No override → every base field, nothing replaced."""
        rule = RateLimitRule(id="r", endpoint="/api/*", limit=10, window=60)
        merged, replaced = overlay(rule, None)
        assert merged["limit"] == 10
        assert merged["window"] == 60
        assert "overrides" not in merged
        assert replaced == ()

    def test_only_set_fields_replace(self):
        rule = RateLimitRule(id="r", endpoint="/api/*", limit=10, window=60, by_ip=True)
        merged, replaced = overlay(rule, RateLimitOverride(limit=-1))
        assert merged["limit"] == -1
        assert merged["window"] == 60
        assert merged["by_ip"] is True
        assert replaced == ("limit",)

    def test_explicit_none_does_not_replace(self):
        rule = RateLimitRule(id="r", endpoint="/api/*", limit=10, window=60)
        merged, replaced = overlay(rule, RateLimitOverride(limit=None, window=30))
        assert merged["limit"] == 10
        assert merged["window"] == 30
        assert replaced == ("window",)


class TestCancellationResolution:
    """Effective cancellation policies."""

    def setup_method(self):
        self.resolver = OverrideResolver()
        self.policy = CancellationPolicy(
            industry_id="healthcare",
            free_window=24,
            penalty_structure=BASE_TIERS,
            overrides={
                "freemium": CancellationOverride(
                    free_window=12,
                    penalty_structure=(tier(12, 0), tier(0, 100, 25)),
                ),
                "beauty_like": CancellationOverride(free_window=6),
            },
        )

    def test_identity_without_override(self):
        """Plan with no override entry → base policy unchanged."""
        effective = self.resolver.resolve_cancellation_policy(self.policy, "enterprise")
        assert effective.free_window == self.policy.free_window
        assert effective.penalty_structure == self.policy.penalty_structure
        assert effective.refund_eligibility == self.policy.refund_eligibility
        assert effective.overridden_fields == ()
        assert effective.plan == "enterprise"

    def test_lists_replaced_wholesale(self):
        effective = self.resolver.resolve_cancellation_policy(self.policy, "freemium")
        assert effective.free_window == 12
        assert len(effective.penalty_structure) == 2
        assert effective.penalty_structure[-1].penalty_percentage == 100
        assert set(effective.overridden_fields) == {"free_window", "penalty_structure"}

    def test_unset_fields_fall_through(self):
        effective = self.resolver.resolve_cancellation_policy(self.policy, "beauty_like")
        assert effective.free_window == 6
        assert effective.penalty_structure == BASE_TIERS

    def test_empty_override_list_is_present(self):
        """An empty tier list replaces the base list; with a free window that is invalid."""
        policy = self.policy.model_copy(update={
            "overrides": {"freemium": CancellationOverride(free_window=6, penalty_structure=())},
        })
        with pytest.raises(ConfigInvalidError):
            self.resolver.resolve_cancellation_policy(policy, "freemium")

    def test_empty_override_list_with_zero_window(self):
        policy = self.policy.model_copy(update={
            "overrides": {"freemium": CancellationOverride(free_window=0, penalty_structure=())},
        })
        effective = self.resolver.resolve_cancellation_policy(policy, "freemium")
        assert effective.penalty_structure == ()

    def test_violating_override_rejected(self):
        policy = self.policy.model_copy(update={
            "overrides": {"pro": CancellationOverride(penalty_structure=(tier(12, 50), tier(24, 100)))},
        })
        with pytest.raises(ConfigInvalidError) as exc_info:
            self.resolver.resolve_cancellation_policy(policy, "pro")
        assert "overrides.pro" in exc_info.value.path


class TestTierValidation:
    """Canonical tier ordering."""

    def test_valid_tiers(self):
        validate_penalty_tiers(BASE_TIERS, 24, "x")

    def test_equal_thresholds_rejected(self):
        with pytest.raises(ConfigInvalidError):
            validate_penalty_tiers((tier(12, 0), tier(12, 50)), 24, "x")

    def test_ascending_rejected(self):
        with pytest.raises(ConfigInvalidError):
            validate_penalty_tiers((tier(2, 100), tier(12, 50)), 24, "x")

    def test_severity_decrease_rejected(self):
        """A tighter window must not be cheaper."""
        with pytest.raises(ConfigInvalidError):
            validate_penalty_tiers((tier(24, 50), tier(12, 25)), 24, "x")

    def test_minimum_fee_decrease_rejected(self):
        with pytest.raises(ConfigInvalidError):
            validate_penalty_tiers((tier(24, 50, 40), tier(12, 50, 10)), 24, "x")

    def test_free_window_without_tiers_rejected(self):
        with pytest.raises(ConfigInvalidError):
            validate_penalty_tiers((), 12, "x")


class TestReschedulingAndRefundResolution:

    def setup_method(self):
        self.resolver = OverrideResolver()

    def test_rescheduling_override(self):
        policy = ReschedulingPolicy(
            industry_id="healthcare",
            allowed_changes=3,
            time_window=12,
            fee_structure=(FeeStructure(change_number=1, fee=0), FeeStructure(change_number=2, fee=15)),
            restrictions=("same_provider",),
            overrides={"enterprise": ReschedulingOverride(allowed_changes=5, restrictions=())},
        )
        effective = self.resolver.resolve_rescheduling_policy(policy, "enterprise")
        assert effective.allowed_changes == 5
        assert effective.restrictions == ()
        assert effective.time_window == 12

    def test_fee_structure_must_start_at_one(self):
        with pytest.raises(ConfigInvalidError):
            validate_fee_structure((FeeStructure(change_number=2, fee=0),), "x")

    def test_fee_structure_gaps_rejected(self):
        with pytest.raises(ConfigInvalidError):
            validate_fee_structure(
                (FeeStructure(change_number=1, fee=0), FeeStructure(change_number=3, fee=5)), "x",
            )

    def test_refund_model_industry_override(self):
        model = RefundModel(
            plan="enterprise",
            time_windows=(RefundWindow(days=90, percentage=100, conditions=("any_reason",)),),
            overrides={"legal": RefundOverride(time_windows=(RefundWindow(days=60, percentage=100),))},
        )
        base = self.resolver.resolve_refund_model(model)
        legal = self.resolver.resolve_refund_model(model, "legal")
        retail = self.resolver.resolve_refund_model(model, "retail")

        assert base.time_windows[0].days == 90
        assert base.industry_id is None
        assert legal.time_windows[0].days == 60
        assert legal.overridden_fields == ("time_windows",)
        assert retail.time_windows == model.time_windows
        assert retail.industry_id == "retail"
