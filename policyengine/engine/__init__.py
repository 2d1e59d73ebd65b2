"""
Policy Evaluation Engine - booking policy and feature resolution.

Components:
- overrides: shallow overlay of per-plan / per-industry / per-role overrides
- penalties: cancellation penalty tiers (tightest covering window)
- refunds: refund windows and cancellation refund eligibility
- rescheduling: change limits, time windows, restrictions and fees
- flags: global, tiered and beta flags plus conditional logic trees
- trust: weighted trust signals with a closed normalizer registry
- limits: plan quotas, plan features and per-role rate limits
- compliance: data residency and jurisdiction rules per region
- engine: PolicyEngine facade returning Outcome values
"""
