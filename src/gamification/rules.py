"""Pure streak and level rules."""

from dataclasses import dataclass
from datetime import date, timedelta

from src.utils.numbers import percent_half_up


@dataclass(frozen=True)
class Streak:
    current_days: int
    longest_days: int
    last_activity_date: date | None


def next_streak(
    current_days: int,
    longest_days: int,
    last_activity_date: date | None,
    activity_date: date,
) -> Streak:
    """Apply one day of activity to a streak.

    Same day: unchanged. Next day: +1. Any later day, or no previous
    activity: reset to 1. A date before the last activity is stale
    (late redelivery) and leaves the streak unchanged.
    """
    if last_activity_date is None:
        current = 1
    elif activity_date <= last_activity_date:
        return Streak(current_days, longest_days, last_activity_date)
    elif activity_date - last_activity_date == timedelta(days=1):
        current = current_days + 1
    else:
        current = 1
    return Streak(current, max(longest_days, current), activity_date)


def level_for_points(total_points: int, points_per_level: int, max_level: int) -> int:
    """floor(total / per_level) + 1, capped at ``max_level``."""
    return min(total_points // points_per_level + 1, max_level)


@dataclass(frozen=True)
class LevelProgress:
    level: int
    points_into_level: int
    points_to_next_level: int
    percent: int
    is_max_level: bool


def level_progress(total_points: int, points_per_level: int, max_level: int) -> LevelProgress:
    """Where a point total sits inside its level."""
    level = level_for_points(total_points, points_per_level, max_level)
    if level >= max_level:
        return LevelProgress(
            level=level,
            points_into_level=total_points - (max_level - 1) * points_per_level,
            points_to_next_level=0,
            percent=100,
            is_max_level=True,
        )
    into = total_points - (level - 1) * points_per_level
    return LevelProgress(
        level=level,
        points_into_level=into,
        points_to_next_level=points_per_level - into,
        percent=percent_half_up(into, points_per_level),
        is_max_level=False,
    )
