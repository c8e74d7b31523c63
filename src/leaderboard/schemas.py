"""Pydantic schemas for leaderboards."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import LeaderboardPeriod, LeaderboardSnapshot


class LeaderboardEntryResponse(BaseModel):
    user_id: UUID
    points: int
    rank: int
    rank_change: int = Field(
        0, description="Current rank minus rank in the previous closed window"
    )


class LeaderboardResponse(BaseModel):
    """Ranked entries of one window."""

    period: LeaderboardPeriod
    window_start: datetime
    window_end: datetime
    department: str | None = None
    frozen: bool = False
    entries: list[LeaderboardEntryResponse] = []

    @classmethod
    def from_snapshot(cls, snapshot: LeaderboardSnapshot) -> "LeaderboardResponse":
        return cls(
            period=snapshot.period,
            window_start=snapshot.window_start,
            window_end=snapshot.window_end,
            department=snapshot.department,
            frozen=snapshot.frozen,
            entries=[
                LeaderboardEntryResponse(
                    user_id=e.user_id,
                    points=e.points,
                    rank=e.rank,
                    rank_change=e.rank_change,
                )
                for e in snapshot.entries
            ],
        )


class ClosePeriodRequest(BaseModel):
    """Freeze a finished window (defaults to the one before the current)."""

    department: str | None = None
    window_start: datetime | None = None
