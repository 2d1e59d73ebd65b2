"""
Trust & Limits API Endpoints.

POST /api/v1/trust/score                      - weighted trust score
GET  /api/v1/limits/{plan}/{quota}?usage=N    - plan quota verdict
GET  /api/v1/rate-limits?endpoint=...&role=... - resolved rate limit
"""

from fastapi import APIRouter, Depends, Query

from policyengine.api.deps import get_engine, unwrap
from policyengine.api.schemas import TrustScoreRequest, dump
from policyengine.engine.engine import PolicyEngine

router = APIRouter(tags=["trust"])


@router.post("/trust/score")
async def score(
    body: TrustScoreRequest,
    engine: PolicyEngine = Depends(get_engine),
):
    """Trust score and recommended verification level."""
    return dump(unwrap(engine.score(body.measurements)))


@router.get("/limits/{plan}/{quota}")
async def check_limit(
    plan: str,
    quota: str,
    usage: int = Query(0),
    engine: PolicyEngine = Depends(get_engine),
):
    return dump(unwrap(engine.check_limit(plan, quota, usage)))


@router.get("/rate-limits")
async def resolve_rate_limit(
    endpoint: str,
    role: str,
    engine: PolicyEngine = Depends(get_engine),
):
    """Rate limit for `endpoint` as seen by `role`; null when no rule matches."""
    return dump(unwrap(engine.resolve_rate_limit(endpoint, role)))
