"""
Policy API Endpoints.

GET  /api/v1/policies/cancellation/{industry}/{plan}  - effective cancellation policy
GET  /api/v1/policies/rescheduling/{industry}/{plan}  - effective rescheduling policy
GET  /api/v1/policies/refund-model/{plan}             - effective refund model
POST /api/v1/policies/penalty-quote                   - cancellation penalty
POST /api/v1/policies/refund                          - refund verdict
POST /api/v1/policies/reschedule-quote                - reschedule quote
"""

from typing import Optional

from fastapi import APIRouter, Depends

from policyengine.api.deps import get_engine, unwrap
from policyengine.api.schemas import (
    PenaltyQuoteRequest,
    RefundRequest,
    RescheduleQuoteRequest,
    dump,
)
from policyengine.engine.engine import PolicyEngine

router = APIRouter(prefix="/policies", tags=["policies"])


@router.get("/cancellation/{industry}/{plan}")
async def get_cancellation_policy(
    industry: str,
    plan: str,
    engine: PolicyEngine = Depends(get_engine),
):
    """Cancellation policy for one (industry, plan) pair after overrides."""
    return dump(unwrap(engine.resolve_cancellation_policy(industry, plan)))


@router.get("/rescheduling/{industry}/{plan}")
async def get_rescheduling_policy(
    industry: str,
    plan: str,
    engine: PolicyEngine = Depends(get_engine),
):
    return dump(unwrap(engine.resolve_rescheduling_policy(industry, plan)))


@router.get("/refund-model/{plan}")
async def get_refund_model(
    plan: str,
    industry: Optional[str] = None,
    engine: PolicyEngine = Depends(get_engine),
):
    return dump(unwrap(engine.resolve_refund_model(plan, industry)))


@router.post("/penalty-quote")
async def quote_penalty(
    body: PenaltyQuoteRequest,
    engine: PolicyEngine = Depends(get_engine),
):
    """Penalty for cancelling `hours_before_event` hours before the booking."""
    outcome = engine.quote_penalty(body.context.to_context(), body.base_fee, body.hours_before_event)
    return dump(unwrap(outcome))


@router.post("/refund")
async def evaluate_refund(
    body: RefundRequest,
    engine: PolicyEngine = Depends(get_engine),
):
    context = body.context.to_context()
    if body.elapsed_days is not None:
        outcome = engine.evaluate_refund(context, body.reason, body.elapsed_days)
    else:
        outcome = engine.evaluate_cancellation_refund(context, body.reason, body.hours_before_event)
    return dump(unwrap(outcome))


@router.post("/reschedule-quote")
async def quote_reschedule(
    body: RescheduleQuoteRequest,
    engine: PolicyEngine = Depends(get_engine),
):
    outcome = engine.quote_reschedule(body.context.to_context(), body.base_fee, body.hours_before_event)
    return dump(unwrap(outcome))
