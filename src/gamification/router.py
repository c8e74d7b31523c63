"""Gamification API endpoints (read-only; the ledger is fed by completions)."""

from uuid import UUID

from fastapi import APIRouter, Query

from .dependencies import GamificationLedgerDep
from .schemas import (
    GamificationStateResponse,
    PointsTransactionListResponse,
    PointsTransactionResponse,
)


router = APIRouter(prefix="/v1/gamification", tags=["gamification"])


@router.get(
    "/users/{user_id}",
    response_model=GamificationStateResponse,
    summary="Get user points, level and streak",
)
async def get_user_state(
    user_id: UUID,
    ledger: GamificationLedgerDep,
) -> GamificationStateResponse:
    state = await ledger.get_state(user_id)
    return GamificationStateResponse.from_entity(state, ledger.get_level_progress(state))


@router.get(
    "/users/{user_id}/transactions",
    response_model=PointsTransactionListResponse,
    summary="List points transactions",
)
async def list_transactions(
    user_id: UUID,
    ledger: GamificationLedgerDep,
    limit: int = Query(50, ge=1, le=200),
) -> PointsTransactionListResponse:
    transactions = await ledger.list_transactions(user_id, limit)
    return PointsTransactionListResponse(
        items=[PointsTransactionResponse.from_entity(t) for t in transactions],
        total=len(transactions),
    )
