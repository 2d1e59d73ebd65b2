"""
Plan limits, plan features and per-role rate limits.

Rate-limit rules match endpoints by glob pattern. When several rules match,
an exact pattern wins over a glob and a longer pattern wins over a shorter
one. The role override is applied with the same shallow overlay the
policy resolver uses.
"""

from fnmatch import fnmatchcase
from typing import Optional

from policyengine.engine.overrides import overlay
from policyengine.errors import UnknownQuotaError
from policyengine.schemas.decisions import LimitVerdict, ResolvedRateLimit
from policyengine.schemas.foundation import Plan
from policyengine.schemas.protection import RateLimitRule

UNLIMITED = -1
ALL_FEATURES = "all_features"


def check_limit(plan: Plan, quota: str, usage: int) -> LimitVerdict:
    """Whether a plan with `usage` units consumed may consume one more."""
    if quota not in plan.limits:
        raise UnknownQuotaError(plan.id, quota)

    limit = plan.limits[quota]
    if limit == UNLIMITED:
        return LimitVerdict(
            plan=plan.id, quota=quota, allowed=True, limit=limit,
            usage=usage, remaining=None, unlimited=True,
        )
    return LimitVerdict(
        plan=plan.id,
        quota=quota,
        allowed=usage < limit,
        limit=limit,
        usage=usage,
        remaining=max(limit - usage, 0),
    )


def plan_has_feature(plan: Plan, feature: str) -> bool:
    return ALL_FEATURES in plan.features or feature in plan.features


def _specificity(rule: RateLimitRule) -> tuple[int, int]:
    is_exact = not any(ch in rule.endpoint for ch in "*?[")
    return (1 if is_exact else 0, len(rule.endpoint))


def match_rule(rules: tuple[RateLimitRule, ...], endpoint: str) -> Optional[RateLimitRule]:
    matching = [r for r in rules if fnmatchcase(endpoint, r.endpoint)]
    if not matching:
        return None
    return max(matching, key=_specificity)


def resolve_rate_limit(
    rules: tuple[RateLimitRule, ...],
    endpoint: str,
    role: str,
) -> Optional[ResolvedRateLimit]:
    rule = match_rule(rules, endpoint)
    if rule is None:
        return None

    merged, replaced = overlay(rule, rule.overrides.get(role))
    return ResolvedRateLimit(
        rule_id=merged["id"],
        endpoint=merged["endpoint"],
        role=role,
        limit=merged["limit"],
        window=merged["window"],
        by_user=merged["by_user"],
        by_ip=merged["by_ip"],
        unlimited=merged["limit"] == UNLIMITED,
        overridden_fields=replaced,
    )
