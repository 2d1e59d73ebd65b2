"""
Feature Flag API Endpoints.

POST /api/v1/flags/{flag_id}          - evaluate a flag or conditional tree
POST /api/v1/flags/{feature_id}/access - full access report for a feature
"""

from fastapi import APIRouter, Depends

from policyengine.api.deps import get_engine, unwrap
from policyengine.api.schemas import ContextBody, dump
from policyengine.engine.engine import PolicyEngine

router = APIRouter(prefix="/flags", tags=["flags"])


@router.post("/{flag_id}")
async def evaluate_flag(
    flag_id: str,
    body: ContextBody,
    engine: PolicyEngine = Depends(get_engine),
):
    """Flag decision with the reason it was reached."""
    return dump(unwrap(engine.explain_flag(flag_id, body.to_context())))


@router.post("/{feature_id}/access")
async def evaluate_access(
    feature_id: str,
    body: ContextBody,
    engine: PolicyEngine = Depends(get_engine),
):
    return dump(unwrap(engine.evaluate_full_access(feature_id, body.to_context())))
