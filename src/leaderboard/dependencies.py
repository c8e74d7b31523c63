"""FastAPI dependencies for leaderboards."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import LeaderboardAggregator


async def get_leaderboard_aggregator(request: Request) -> LeaderboardAggregator:
    """Get leaderboard aggregator from app state (requires Redis)."""
    aggregator = getattr(request.app.state, "leaderboard_aggregator", None)
    if aggregator is None or not aggregator.available:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Leaderboard not available",
        )
    return aggregator


LeaderboardAggregatorDep = Annotated[
    LeaderboardAggregator, Depends(get_leaderboard_aggregator)
]
