"""Earnings ledger endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...models import AddEarningsRequest, AddEarningsResponse, EarningsResponse
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter()


@router.get("/earnings", response_model=EarningsResponse)
def get_earnings(runtime: AgentRuntime = Depends(get_runtime)):
    return runtime.ledger.summary()


@router.post("/earnings/add", response_model=AddEarningsResponse)
def add_earnings(request: AddEarningsRequest, runtime: AgentRuntime = Depends(get_runtime)):
    """Record one passed challenge. Negative amounts are rejected with 400."""
    config = runtime.ledger.add_earnings(request.amount, request.timestamp)
    return AddEarningsResponse(
        total_earned_hbd=config.total_earned_hbd,
        challenge_count=config.challenge_count,
    )
