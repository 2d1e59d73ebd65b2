"""
Plan Limit and Rate Limit Tests.
"""

import pytest

from policyengine.engine.limits import check_limit, match_rule, plan_has_feature, resolve_rate_limit
from policyengine.errors import UnknownQuotaError
from policyengine.schemas.foundation import Plan
from policyengine.schemas.protection import RateLimitOverride, RateLimitRule


@pytest.fixture
def freemium():
    return Plan(
        id="freemium",
        name="Freemium",
        features=frozenset({"basic_booking"}),
        limits={"services": 2, "bookings_per_month": 50},
        priority=1,
    )


@pytest.fixture
def enterprise():
    return Plan(
        id="enterprise",
        name="Enterprise",
        features=frozenset({"all_features"}),
        limits={"services": -1},
        priority=4,
    )


class TestPlanLimits:

    def test_under_limit(self, freemium):
        verdict = check_limit(freemium, "services", 1)
        assert verdict.allowed
        assert verdict.remaining == 1

    def test_at_limit(self, freemium):
        verdict = check_limit(freemium, "services", 2)
        assert not verdict.allowed
        assert verdict.remaining == 0

    def test_over_limit_remaining_floors_at_zero(self, freemium):
        assert check_limit(freemium, "services", 5).remaining == 0

    def test_unlimited(self, enterprise):
        verdict = check_limit(enterprise, "services", 10_000)
        assert verdict.allowed
        assert verdict.unlimited
        assert verdict.remaining is None

    def test_unknown_quota(self, freemium):
        with pytest.raises(UnknownQuotaError):
            check_limit(freemium, "seats", 0)

    def test_features(self, freemium, enterprise):
        assert plan_has_feature(freemium, "basic_booking")
        assert not plan_has_feature(freemium, "analytics")
        assert plan_has_feature(enterprise, "anything_at_all")


class TestRateLimits:

    def setup_method(self):
        self.rules = (
            RateLimitRule(
                id="api_general",
                endpoint="/api/*",
                limit=1000,
                window=3600,
                by_ip=True,
                overrides={"platform_admin": RateLimitOverride(limit=-1)},
            ),
            RateLimitRule(id="bookings", endpoint="/api/bookings", limit=100, window=3600),
            RateLimitRule(
                id="auth",
                endpoint="/api/auth/*",
                limit=20,
                window=900,
                by_user=False,
                by_ip=True,
                overrides={"org_admin": RateLimitOverride(limit=75)},
            ),
        )

    def test_exact_pattern_wins(self):
        assert match_rule(self.rules, "/api/bookings").id == "bookings"

    def test_longer_glob_wins(self):
        assert match_rule(self.rules, "/api/auth/login").id == "auth"

    def test_fallback_glob(self):
        assert match_rule(self.rules, "/api/services").id == "api_general"

    def test_no_match(self):
        assert match_rule(self.rules, "/health") is None
        assert resolve_rate_limit(self.rules, "/health", "end_user") is None

    def test_role_override(self):
        limit = resolve_rate_limit(self.rules, "/api/auth/login", "org_admin")
        assert limit.limit == 75
        assert limit.window == 900
        assert limit.by_ip
        assert limit.overridden_fields == ("limit",)

    def test_unlimited_override(self):
        limit = resolve_rate_limit(self.rules, "/api/services", "platform_admin")
        assert limit.unlimited
        assert limit.limit == -1

    def test_role_without_override_uses_base(self):
        limit = resolve_rate_limit(self.rules, "/api/services", "end_user")
        assert limit.limit == 1000
        assert limit.overridden_fields == ()
