"""
Booking Policy Engine - multi-dimensional policy and feature resolution.

Architecture:
    policyengine/
    ├── api/             # FastAPI routers (HTTP boundary)
    ├── engine/          # Calculators, flag evaluator, trust scorer, facade
    ├── schemas/         # Pydantic config documents, context, decisions
    ├── store/           # Loaders, validated snapshots, atomic reload
    ├── config.py        # Environment-driven settings
    ├── errors.py        # Error taxonomy
    └── logs.py          # structlog configuration

Module Boundaries:
    - Configuration is read-only at evaluation time
    - Every snapshot that is served passed validation
    - Caller errors come back as Outcome values, never as exceptions

Data Flow:
    ConfigLoader → build_snapshot (validate + resolve overrides) → ConfigStore
    → PolicyEngine(context) → decision

Version: 1.0.0
"""

__version__ = "1.0.0"
