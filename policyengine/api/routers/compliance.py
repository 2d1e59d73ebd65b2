"""
Compliance API Endpoints.

GET  /api/v1/compliance/{region}                         - data residency rule
GET  /api/v1/compliance/{region}/jurisdiction?industry=... - jurisdiction rules
POST /api/v1/compliance/profile                          - profile for a context
"""

from typing import Optional

from fastapi import APIRouter, Depends

from policyengine.api.deps import get_engine, unwrap
from policyengine.api.schemas import ContextBody, dump
from policyengine.engine.engine import PolicyEngine

router = APIRouter(prefix="/compliance", tags=["compliance"])


@router.post("/profile")
async def compliance_profile(
    body: ContextBody,
    engine: PolicyEngine = Depends(get_engine),
):
    """Residency, jurisdiction and privacy rules for the context's region."""
    return dump(unwrap(engine.resolve_compliance(body.to_context())))


@router.get("/{region}")
async def data_residency(
    region: str,
    engine: PolicyEngine = Depends(get_engine),
):
    return dump(unwrap(engine.resolve_data_residency(region)))


@router.get("/{region}/jurisdiction")
async def jurisdiction_rules(
    region: str,
    industry: Optional[str] = None,
    engine: PolicyEngine = Depends(get_engine),
):
    rules = unwrap(engine.resolve_jurisdiction_rules(region, industry))
    return [dump(rule) for rule in rules]
