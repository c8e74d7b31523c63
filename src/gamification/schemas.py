"""Pydantic schemas for gamification state."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import PointsTransaction, UserGamificationState
from .rules import LevelProgress


class LevelProgressResponse(BaseModel):
    level: int
    points_into_level: int
    points_to_next_level: int
    percent: int = Field(ge=0, le=100)
    is_max_level: bool


class GamificationStateResponse(BaseModel):
    """Points, level and streak of a user."""

    user_id: UUID
    total_points: int
    current_level: int
    current_streak_days: int
    longest_streak_days: int
    last_activity_date: date | None = None
    level_progress: LevelProgressResponse

    @classmethod
    def from_entity(
        cls, entity: UserGamificationState, progress: LevelProgress
    ) -> "GamificationStateResponse":
        return cls(
            user_id=entity.user_id,
            total_points=entity.total_points,
            current_level=entity.current_level,
            current_streak_days=entity.current_streak_days,
            longest_streak_days=entity.longest_streak_days,
            last_activity_date=entity.last_activity_date,
            level_progress=LevelProgressResponse(
                level=progress.level,
                points_into_level=progress.points_into_level,
                points_to_next_level=progress.points_to_next_level,
                percent=progress.percent,
                is_max_level=progress.is_max_level,
            ),
        )


class PointsTransactionResponse(BaseModel):
    id: UUID
    amount: int
    balance: int
    source: str
    source_id: str | None = None
    description: str = ""
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: PointsTransaction) -> "PointsTransactionResponse":
        return cls(
            id=entity.id,
            amount=entity.amount,
            balance=entity.balance,
            source=entity.source,
            source_id=entity.source_id,
            description=entity.description,
            created_at=entity.created_at,
        )


class PointsTransactionListResponse(BaseModel):
    items: list[PointsTransactionResponse]
    total: int
