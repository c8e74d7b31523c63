"""Leaderboard periods, windows and snapshots.

Points are bucketed per (period, window start, department). A window is
closed once the next one has started; its ranking is then frozen and
becomes the rank-change baseline of the following window.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import UUID


class LeaderboardPeriod(str, Enum):
    """Leaderboard time window."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"


ALL_DEPARTMENTS = "all"


def window_start(
    period: LeaderboardPeriod,
    at: datetime,
    week_start_day: int = 0,
    reset_hour: int = 0,
) -> datetime:
    """Start of the window containing ``at`` (UTC).

    WEEKLY windows start on ``week_start_day`` (0 = Monday) at
    ``reset_hour``; MONTHLY windows start on the 1st at 00:00.
    """
    at = at.astimezone(UTC)
    if period == LeaderboardPeriod.MONTHLY:
        return datetime(at.year, at.month, 1, tzinfo=UTC)

    days_back = (at.weekday() - week_start_day) % 7
    day = at.date() - timedelta(days=days_back)
    start = datetime(day.year, day.month, day.day, reset_hour, tzinfo=UTC)
    if start > at:
        start -= timedelta(days=7)
    return start


def next_window_start(period: LeaderboardPeriod, start: datetime) -> datetime:
    if period == LeaderboardPeriod.MONTHLY:
        if start.month == 12:
            return datetime(start.year + 1, 1, 1, tzinfo=UTC)
        return datetime(start.year, start.month + 1, 1, tzinfo=UTC)
    return start + timedelta(days=7)


def previous_window_start(period: LeaderboardPeriod, start: datetime) -> datetime:
    if period == LeaderboardPeriod.MONTHLY:
        if start.month == 1:
            return datetime(start.year - 1, 12, 1, tzinfo=UTC)
        return datetime(start.year, start.month - 1, 1, tzinfo=UTC)
    return start - timedelta(days=7)


def bucket_key(period: LeaderboardPeriod, start: datetime, department: str | None) -> str:
    """Redis key of one bucket.

    e.g. ``leaderboard:weekly:20260112T00:all`` for everyone and
    ``leaderboard:weekly:20260112T00:dept:sales`` for a department, so no
    department name can address the overall bucket.
    """
    scope = f"dept:{department}" if department else ALL_DEPARTMENTS
    return f"leaderboard:{period.value}:{start:%Y%m%dT%H}:{scope}"


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: UUID
    points: int
    rank: int
    rank_change: int = 0


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """Ranked view of one bucket."""

    period: LeaderboardPeriod
    window_start: datetime
    window_end: datetime
    department: str | None
    entries: list[LeaderboardEntry] = field(default_factory=list)
    frozen: bool = False
