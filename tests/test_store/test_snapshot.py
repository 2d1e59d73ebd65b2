"""
Snapshot Builder Tests.

Every cross-document invariant is checked at build time; a violation
rejects the whole snapshot.
"""

import pytest

from conftest import build_from
from policyengine.errors import ConfigInvalidError


class TestDefaultSnapshot:

    def test_effective_policies_for_every_pair(self, snapshot):
        industries = snapshot.foundation.industries
        plans = snapshot.foundation.plans
        assert len(snapshot.cancellation) == len(industries) * len(plans)
        assert ("healthcare", "freemium") in snapshot.cancellation
        assert ("enterprise", None) in snapshot.refunds
        assert ("enterprise", "legal") in snapshot.refunds

    def test_indexes(self, snapshot):
        assert "ai_scheduling" in snapshot.flags_by_id
        assert snapshot.trees_by_feature["premium_features"].id == "premium_features_tree"

    def test_indexes_are_read_only(self, snapshot):
        with pytest.raises(TypeError):
            snapshot.flags_by_id["new_flag"] = None

    def test_version_string(self, snapshot):
        assert snapshot.version.startswith("foundation=1.0.0;")


class TestFoundationValidation:

    def test_weights_must_sum_to_one(self, documents):
        documents["foundation"]["trustFlags"]["trustSignals"][0]["weight"] = 0.5
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert exc_info.value.path == "trustFlags.trustSignals"
        assert exc_info.value.details["sum"] == pytest.approx(1.3)

    def test_weight_tolerance(self, documents):
        documents["foundation"]["trustFlags"]["trustSignals"][0]["weight"] = 0.2005
        build_from(documents, weight_tolerance=0.001)

    def test_unknown_calculation(self, documents):
        documents["foundation"]["trustFlags"]["trustSignals"][0]["calculation"] = "__import__('os')"
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert "Unknown trust calculation" in exc_info.value.message

    def test_duplicate_priorities(self, documents):
        documents["foundation"]["plans"]["advanced"]["priority"] = 1
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_limits_below_unlimited(self, documents):
        documents["foundation"]["plans"]["freemium"]["limits"]["services"] = -2
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_key_must_match_id(self, documents):
        documents["foundation"]["roles"]["end_user"]["id"] = "user"
        with pytest.raises(ConfigInvalidError):
            build_from(documents)


class TestGovernanceValidation:

    def test_override_for_unknown_plan(self, documents):
        overrides = documents["governance"]["cancellationPolicies"]["beauty"]["overrides"]
        overrides["platinum"] = {"freeWindow": 2}
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert exc_info.value.path == "cancellationPolicies.beauty.overrides.platinum"

    def test_policy_for_unknown_industry(self, documents):
        policies = documents["governance"]["reschedulingPolicies"]
        policies["aerospace"] = dict(policies["healthcare"], industryId="aerospace")
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_base_tiers_out_of_order(self, documents):
        tiers = documents["governance"]["cancellationPolicies"]["beauty"]["penaltyStructure"]
        tiers.reverse()
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_override_tiers_rejected_at_load(self, documents):
        override = documents["governance"]["cancellationPolicies"]["healthcare"]["overrides"]["advanced"]
        override["penaltyStructure"][1]["penaltyPercentage"] = 0
        override["penaltyStructure"][0]["penaltyPercentage"] = 50
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert "overrides.advanced" in exc_info.value.path

    def test_refund_override_for_unknown_industry(self, documents):
        documents["governance"]["refundModels"]["enterprise"]["overrides"]["space"] = {}
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_fee_structure_numbering(self, documents):
        fees = documents["governance"]["reschedulingPolicies"]["healthcare"]["feeStructure"]
        fees[1]["changeNumber"] = 5
        with pytest.raises(ConfigInvalidError):
            build_from(documents)


class TestFlagValidation:

    def test_duplicate_flag_id(self, documents):
        flags = documents["feature_flags"]["flags"]
        flags.append(dict(flags[0]))
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert "Duplicate flag id" in exc_info.value.message

    def test_tiered_flag_unknown_role(self, documents):
        flag = next(f for f in documents["feature_flags"]["flags"] if f["id"] == "team_management")
        flag["roleAccess"]["guest"] = True
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_beta_flag_unknown_stage(self, documents):
        flag = next(f for f in documents["feature_flags"]["flags"] if f["id"] == "voice_booking_interface")
        flag["eligibility"]["stages"].append("hibernating")
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_duplicate_tree_feature(self, documents):
        trees = documents["feature_flags"]["conditionalTrees"]
        trees.append(dict(trees[0], id="another_tree"))
        with pytest.raises(ConfigInvalidError):
            build_from(documents)


class TestProtectionValidation:

    def test_override_for_unknown_role(self, documents):
        documents["protection"]["rateLimiting"][0]["overrides"]["robot"] = {"limit": 1}
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_duplicate_rule_ids(self, documents):
        rules = documents["protection"]["rateLimiting"]
        rules.append(dict(rules[0]))
        with pytest.raises(ConfigInvalidError):
            build_from(documents)


class TestComplianceValidation:

    def test_default_regions_indexed(self, snapshot):
        assert set(snapshot.compliance.data_residency) == {"us", "eu", "uk", "apac", "global"}
        assert snapshot.version.endswith(";compliance=1.0.0")

    def test_region_key_must_match(self, documents):
        documents["compliance"]["dataResidency"]["uk"]["region"] = "eu"
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert exc_info.value.path == "dataResidency.uk"

    def test_negative_retention(self, documents):
        documents["compliance"]["dataResidency"]["us"]["retentionPeriods"]["audit_logs"] = -1
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_jurisdiction_unknown_region(self, documents):
        documents["compliance"]["jurisdictionRules"][0]["region"] = "antarctica"
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert exc_info.value.path == "jurisdictionRules[0]"

    def test_jurisdiction_unknown_industry(self, documents):
        documents["compliance"]["jurisdictionRules"][0]["industries"].append("aerospace")
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert exc_info.value.path == "jurisdictionRules[0].industries"

    def test_industry_requires_known_region(self, documents):
        del documents["compliance"]["dataResidency"]["eu"]
        documents["compliance"]["jurisdictionRules"] = [
            rule for rule in documents["compliance"]["jurisdictionRules"] if rule["region"] != "eu"
        ]
        with pytest.raises(ConfigInvalidError) as exc_info:
            build_from(documents)
        assert exc_info.value.details["regions"] == ["eu"]

    def test_required_consent_cannot_default_off(self, documents):
        documents["compliance"]["privacyPreferences"]["defaultSettings"]["essential_functionality"] = False
        with pytest.raises(ConfigInvalidError):
            build_from(documents)

    def test_default_for_unknown_consent(self, documents):
        documents["compliance"]["privacyPreferences"]["defaultSettings"]["telepathy"] = True
        with pytest.raises(ConfigInvalidError):
            build_from(documents)
