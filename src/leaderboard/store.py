"""Redis storage of leaderboard buckets.

Per bucket key:
- ``{key}``: sorted set user_id -> points accrued in the window
- ``{key}:reached``: hash user_id -> epoch when the current total was reached
- ``{key}:frozen``: hash user_id -> rank, written when the window is closed
- ``{key}:closed``: flag set together with the frozen ranks
- ``{key}:applied``: set of credit keys already added to the bucket
"""

from typing import TYPE_CHECKING

import structlog

from .ranking import Standing


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


APPLIED = 1
DUPLICATE = 0
CLOSED = -1

# KEYS: bucket keys; ARGV: user id, points, reached-at epoch, credit key
_APPLY_CREDIT_LUA = """
local results = {}
for i, key in ipairs(KEYS) do
    if redis.call('EXISTS', key .. ':closed') == 1 then
        results[i] = -1
    elseif redis.call('SADD', key .. ':applied', ARGV[4]) == 0 then
        results[i] = 0
    else
        redis.call('ZINCRBY', key, ARGV[2], ARGV[1])
        redis.call('HSET', key .. ':reached', ARGV[1], ARGV[3])
        results[i] = 1
    end
end
return results
"""


class LeaderboardStore:
    """Sorted-set buckets with frozen rank snapshots."""

    def __init__(self, redis: "Redis"):
        self.redis = redis

    async def apply_credit(
        self,
        keys: list[str],
        user_id: str,
        points: int,
        reached_at: float,
        credit_key: str,
    ) -> dict[str, int]:
        """Add one credit to every bucket in ``keys`` in a single script run.

        A bucket records ``credit_key`` in ``{key}:applied``, so running the
        same credit again adds nothing. Closed buckets are left untouched.

        Returns:
            Per bucket: APPLIED, DUPLICATE or CLOSED
        """
        results = await self.redis.eval(
            _APPLY_CREDIT_LUA, len(keys), *keys, user_id, points, reached_at, credit_key
        )
        return {key: int(status) for key, status in zip(keys, results, strict=True)}

    async def standings(self, key: str) -> list[Standing]:
        scores = await self.redis.zrange(key, 0, -1, withscores=True)
        if not scores:
            return []
        reached = await self.redis.hgetall(f"{key}:reached")
        return [
            Standing(
                user_id=user_id,
                points=int(points),
                reached_at=float(reached.get(user_id, 0.0)),
            )
            for user_id, points in scores
        ]

    async def is_closed(self, key: str) -> bool:
        return bool(await self.redis.exists(f"{key}:closed"))

    async def frozen_ranks(self, key: str) -> dict[str, int]:
        raw = await self.redis.hgetall(f"{key}:frozen")
        return {user_id: int(rank) for user_id, rank in raw.items()}

    async def freeze(self, key: str, ranks: dict[str, int]) -> None:
        """Store the final ranks of a closed window and mark it closed."""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(f"{key}:frozen")
            if ranks:
                pipe.hset(f"{key}:frozen", mapping=ranks)
            pipe.set(f"{key}:closed", "1")
            await pipe.execute()
