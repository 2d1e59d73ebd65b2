"""
Admin API Endpoints.

POST /api/v1/admin/reload   - reload configuration (409 when rejected)
GET  /api/v1/admin/snapshot - active snapshot version
"""

import structlog
from fastapi import APIRouter, Depends

from policyengine.api.deps import get_store
from policyengine.store.store import ConfigStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reload")
async def reload_config(store: ConfigStore = Depends(get_store)):
    """
    Reload every configuration document and publish a new snapshot.

    An invalid configuration is rejected with 409; the previous snapshot
    keeps serving.
    """
    snapshot = store.reload()
    logger.info("admin_reload_completed", generation=snapshot.generation)
    return {
        "status": "reloaded",
        "generation": snapshot.generation,
        "version": snapshot.version,
        "loaded_at": snapshot.loaded_at.isoformat(),
    }


@router.get("/snapshot")
async def snapshot_info(store: ConfigStore = Depends(get_store)):
    snapshot = store.snapshot
    return {
        "generation": snapshot.generation,
        "version": snapshot.version,
        "loaded_at": snapshot.loaded_at.isoformat(),
        "industries": sorted(snapshot.foundation.industries),
        "plans": [p.id for p in snapshot.foundation.plans_by_priority()],
        "flags": sorted(snapshot.flags_by_id),
        "regions": sorted(snapshot.compliance.data_residency),
    }
