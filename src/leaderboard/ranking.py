"""Deterministic ranking of bucket standings."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from uuid import UUID

from .models import LeaderboardEntry


@dataclass(frozen=True)
class Standing:
    """Raw bucket row: points and when the user reached that total (epoch)."""

    user_id: str
    points: int
    reached_at: float


def rank_standings(standings: Iterable[Standing]) -> list[tuple[Standing, int]]:
    """Order by points desc, then earlier reached_at, then user id; ranks 1..n."""
    ordered = sorted(standings, key=lambda s: (-s.points, s.reached_at, s.user_id))
    return [(standing, index) for index, standing in enumerate(ordered, start=1)]


def rank_map(standings: Iterable[Standing]) -> dict[str, int]:
    return {standing.user_id: rank for standing, rank in rank_standings(standings)}


def build_entries(
    standings: Iterable[Standing],
    previous_ranks: Mapping[str, int],
    limit: int | None = None,
) -> list[LeaderboardEntry]:
    """Top ``limit`` entries with rank change against the previous window.

    rank_change = current rank - previous rank, 0 for users not ranked in
    the previous window.
    """
    ranked = rank_standings(standings)
    if limit is not None:
        ranked = ranked[:limit]
    entries = []
    for standing, rank in ranked:
        previous = previous_ranks.get(standing.user_id)
        entries.append(
            LeaderboardEntry(
                user_id=UUID(standing.user_id),
                points=standing.points,
                rank=rank,
                rank_change=rank - previous if previous is not None else 0,
            )
        )
    return entries
