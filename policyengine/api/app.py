"""
Booking Policy Engine - FastAPI Application.

Run: uvicorn policyengine.main:app --host 0.0.0.0 --port 8002

Endpoints:
  - GET  /health                                    ← liveness + snapshot version
  - GET  /api/v1/policies/cancellation/{industry}/{plan}
  - POST /api/v1/policies/penalty-quote
  - POST /api/v1/policies/refund
  - POST /api/v1/policies/reschedule-quote
  - POST /api/v1/flags/{flag_id}
  - POST /api/v1/trust/score
  - GET  /api/v1/compliance/{region}
  - POST /api/v1/admin/reload
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from policyengine.api.routers.admin import router as admin_router
from policyengine.api.routers.compliance import router as compliance_router
from policyengine.api.routers.flags import router as flags_router
from policyengine.api.routers.policies import router as policies_router
from policyengine.api.routers.trust import router as trust_router
from policyengine.config import Settings
from policyengine.engine.engine import PolicyEngine
from policyengine.errors import register_exception_handlers
from policyengine.logs import configure_logging
from policyengine.store.store import ConfigStore

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    cfg: Settings = app.state.settings
    configure_logging(cfg.log_level, cfg.log_format)
    logger.info("policy_engine_starting", version=cfg.app_version, environment=cfg.environment)
    store: ConfigStore = app.state.store
    if not store.is_loaded:
        store.load()
    yield
    logger.info("policy_engine_shutdown")


def create_app(store: Optional[ConfigStore] = None, cfg: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    A pre-loaded store may be passed in (tests, embedding); otherwise one is
    built from settings and loaded during startup.
    """
    from policyengine.config import settings as default_settings

    cfg = cfg or default_settings
    store = store or ConfigStore(cfg=cfg)

    app = FastAPI(
        title=cfg.app_name,
        description=(
            "# Booking Policy Engine\n\n"
            "Resolves cancellation, rescheduling and refund policies, "
            "feature flags, trust scores and limits for a booking context.\n\n"
            "## Architecture\n"
            "- **Configuration**: Loader → Validate → Snapshot → Atomic swap\n"
            "- **Evaluation**: Context → PolicyEngine → Decision\n"
        ),
        version=cfg.app_version,
        lifespan=lifespan,
        docs_url="/docs" if cfg.debug else None,
        redoc_url="/redoc" if cfg.debug else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness check"},
            {"name": "policies", "description": "Cancellation, refund and rescheduling policies"},
            {"name": "flags", "description": "Feature flags and access reports"},
            {"name": "trust", "description": "Trust scoring, plan limits and rate limits"},
            {"name": "compliance", "description": "Data residency and jurisdiction rules"},
            {"name": "admin", "description": "Configuration reload"},
        ],
    )

    app.state.settings = cfg
    app.state.store = store
    app.state.engine = PolicyEngine(store, cfg)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────
    prefix = cfg.api_prefix
    app.include_router(policies_router, prefix=prefix)      # /api/v1/policies/*
    app.include_router(flags_router, prefix=prefix)         # /api/v1/flags/*
    app.include_router(trust_router, prefix=prefix)         # /api/v1/trust/*, /limits, /rate-limits
    app.include_router(compliance_router, prefix=prefix)    # /api/v1/compliance/*
    app.include_router(admin_router, prefix=prefix)         # /api/v1/admin/*

    # ── Health Check ──────────────────────────────────────────────────
    @app.get("/health", tags=["health"])
    async def health():
        """
        Liveness check with the active configuration version.

        Returns 503 until a snapshot has been loaded.
        """
        body = {
            "status": "ok",
            "version": cfg.app_version,
            "service": "policy-engine",
        }
        if not store.is_loaded:
            body["status"] = "unavailable"
            return JSONResponse(status_code=503, content=body)

        snapshot = store.snapshot
        body["config"] = {
            "generation": snapshot.generation,
            "version": snapshot.version,
            "loaded_at": snapshot.loaded_at.isoformat(),
        }
        if store.last_error is not None:
            body["status"] = "degraded"
            body["last_reload_error"] = store.last_error.message
        return body

    return app
