"""HTTP boundary for the policy engine."""
