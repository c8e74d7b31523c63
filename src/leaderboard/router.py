"""Leaderboard API endpoints.

Provides routes for:
- Ranked leaderboard per period and department
- Closing a finished period (batch job / admin trigger)
"""

from fastapi import APIRouter, Query

from src.core.exceptions import LearningHubError
from src.core.http_errors import handle_learning_error
from src.users.dependencies import AdminUser

from .dependencies import LeaderboardAggregatorDep
from .models import LeaderboardPeriod
from .schemas import ClosePeriodRequest, LeaderboardResponse


router = APIRouter(prefix="/v1/leaderboard", tags=["leaderboard"])


@router.get(
    "/{period}",
    response_model=LeaderboardResponse,
    summary="Get leaderboard",
)
async def get_leaderboard(
    period: LeaderboardPeriod,
    aggregator: LeaderboardAggregatorDep,
    department: str | None = Query(None, description="Department filter"),
    limit: int | None = Query(None, ge=1, description="Maximum entries"),
) -> LeaderboardResponse:
    """Points earned in the current window, highest first.

    Ties go to whoever reached the total first. Administrators are never
    ranked. Reads may lag recent completions by a moment.
    """
    snapshot = await aggregator.get_leaderboard(period, department, limit)
    return LeaderboardResponse.from_snapshot(snapshot)


@router.post(
    "/{period}/close",
    response_model=LeaderboardResponse,
    summary="Close finished period (admin)",
)
async def close_period(
    period: LeaderboardPeriod,
    data: ClosePeriodRequest,
    aggregator: LeaderboardAggregatorDep,
    _admin: AdminUser,
) -> LeaderboardResponse:
    try:
        snapshot = await aggregator.close_period(period, data.department, data.window_start)
    except LearningHubError as e:
        raise handle_learning_error(e) from e
    return LeaderboardResponse.from_snapshot(snapshot)
