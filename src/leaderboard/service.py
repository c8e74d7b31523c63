"""Leaderboard aggregation service.

Key features:
- Points accrued inside each weekly/monthly window, per department and overall
- Non-blocking updates from the ledger (asyncio.Queue + background worker)
- Administrators never ranked
- Closed windows frozen and used as the rank-change baseline
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from src.core.exceptions import LeaderboardWindowOpenError
from src.utils.dates import utc_now

from .models import (
    LeaderboardPeriod,
    LeaderboardSnapshot,
    bucket_key,
    next_window_start,
    previous_window_start,
    window_start,
)
from .ranking import build_entries, rank_map
from .store import CLOSED, DUPLICATE


if TYPE_CHECKING:
    from uuid import UUID

    from src.users.repository import UserDirectory

    from .store import LeaderboardStore


logger = structlog.get_logger(__name__)

_UPDATE_ATTEMPTS = 3


class LeaderboardAggregator:
    """Maintains ranked period buckets from credited points."""

    def __init__(
        self,
        store: LeaderboardStore | None,
        directory: UserDirectory,
        week_start_day: int = 0,
        reset_hour: int = 0,
        default_limit: int = 20,
        max_limit: int = 100,
        queue_size: int = 10000,
        retry_base_delay: float = 0.2,
    ) -> None:
        """Initialize aggregator.

        Args:
            store: Redis bucket store (None when Redis is unavailable)
            directory: Role and department lookup
            week_start_day: Weekday weekly windows start on (0 = Monday)
            reset_hour: UTC hour weekly windows start at
            default_limit: Entries returned when no limit is given
            max_limit: Upper bound for requested limits
            queue_size: Pending updates kept before dropping
            retry_base_delay: Initial backoff when a store update fails (s)
        """
        self.store = store
        self.directory = directory
        self.week_start_day = week_start_day
        self.reset_hour = reset_hour
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.queue_size = queue_size
        self.retry_base_delay = retry_base_delay

        self._queue: asyncio.Queue[tuple[UUID, int, datetime, str]] = asyncio.Queue(
            maxsize=queue_size
        )
        self._running = False
        self._worker_task: asyncio.Task | None = None

        # Counters for monitoring
        self._updates_queued = 0
        self._updates_dropped = 0
        self._updates_applied = 0

    @property
    def available(self) -> bool:
        return self.store is not None

    def _window_start(self, period: LeaderboardPeriod, at: datetime) -> datetime:
        return window_start(period, at, self.week_start_day, self.reset_hour)

    # ==========================================================================
    # Updates
    # ==========================================================================

    def notify(
        self, user_id: UUID, points: int, timestamp: datetime, credit_key: str | None = None
    ) -> bool:
        """Queue a credited-points update (fire-and-forget).

        ``credit_key`` identifies the credit; the same key is applied to a
        bucket at most once. Updates without one get a fresh key.

        Returns:
            True if queued, False if dropped
        """
        if not self.available:
            return False
        try:
            self._queue.put_nowait((user_id, points, timestamp, credit_key or uuid4().hex))
            self._updates_queued += 1
            return True
        except asyncio.QueueFull:
            self._updates_dropped += 1
            logger.warning(
                "leaderboard_queue_full",
                user_id=str(user_id),
                queue_size=self.queue_size,
                dropped_total=self._updates_dropped,
            )
            return False

    async def on_points_credited(
        self,
        user_id: UUID,
        points: int,
        timestamp: datetime,
        credit_key: str | None = None,
    ) -> None:
        """Add ``points`` to every open bucket the user belongs to, once per credit."""
        if self.store is None or points <= 0:
            return

        user = await self.directory.get_user(user_id)
        if user is not None and user.is_admin:
            logger.debug("leaderboard_admin_skipped", user_id=str(user_id))
            return

        scopes: list[str | None] = [None]
        if user is not None and user.department:
            scopes.append(user.department)

        keys = [
            bucket_key(period, self._window_start(period, timestamp), department)
            for period in LeaderboardPeriod
            for department in scopes
        ]
        results = await self.store.apply_credit(
            keys, str(user_id), points, timestamp.timestamp(), credit_key or uuid4().hex
        )
        for key, status in results.items():
            if status == CLOSED:
                logger.info("leaderboard_late_points_ignored", key=key, user_id=str(user_id))
            elif status == DUPLICATE:
                logger.debug("leaderboard_credit_already_applied", key=key, user_id=str(user_id))

        self._updates_applied += 1

    # ==========================================================================
    # Background Worker
    # ==========================================================================

    async def start(self) -> None:
        """Start the background worker."""
        if self._running:
            logger.warning("leaderboard_worker_already_running")
            return

        self._running = True
        self._worker_task = asyncio.create_task(self._worker_loop(), name="leaderboard_worker")
        logger.info("leaderboard_worker_started", queue_size=self.queue_size)

    async def stop(self) -> None:
        """Stop the worker after applying queued updates."""
        if not self._running:
            return

        self._running = False
        if self._worker_task:
            try:
                await asyncio.wait_for(self._worker_task, timeout=5.0)
            except TimeoutError:
                logger.warning("leaderboard_worker_stop_timeout")
                self._worker_task.cancel()
            except asyncio.CancelledError:
                pass

        logger.info(
            "leaderboard_worker_stopped",
            updates_queued=self._updates_queued,
            updates_applied=self._updates_applied,
            updates_dropped=self._updates_dropped,
        )

    async def _worker_loop(self) -> None:
        while self._running or not self._queue.empty():
            try:
                update = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue
            await self._apply(*update)

    async def _apply(
        self, user_id: UUID, points: int, timestamp: datetime, credit_key: str
    ) -> None:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(_UPDATE_ATTEMPTS),
                wait=wait_exponential(multiplier=self.retry_base_delay, max=2),
                reraise=True,
            ):
                with attempt:
                    await self.on_points_credited(user_id, points, timestamp, credit_key)
        except Exception:
            logger.exception(
                "leaderboard_update_failed",
                user_id=str(user_id),
                points=points,
                credit_key=credit_key,
            )

    async def drain(self) -> None:
        """Apply every queued update now (used by batch jobs and tests)."""
        while not self._queue.empty():
            await self._apply(*self._queue.get_nowait())

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def _baseline(
        self, period: LeaderboardPeriod, start: datetime, department: str | None
    ) -> dict[str, int]:
        """Frozen ranks of a closed window, freezing it on first use."""
        key = bucket_key(period, start, department)
        if await self.store.is_closed(key):
            return await self.store.frozen_ranks(key)
        return await self._freeze(period, start, department)

    async def _freeze(
        self, period: LeaderboardPeriod, start: datetime, department: str | None
    ) -> dict[str, int]:
        key = bucket_key(period, start, department)
        ranks = rank_map(await self.store.standings(key))
        await self.store.freeze(key, ranks)
        logger.info(
            "leaderboard_period_frozen",
            period=period.value,
            window_start=start.isoformat(),
            department=department,
            entries=len(ranks),
        )
        return ranks

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None or limit <= 0:
            return self.default_limit
        return min(limit, self.max_limit)

    async def get_leaderboard(
        self,
        period: LeaderboardPeriod,
        department: str | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> LeaderboardSnapshot:
        """Top entries of the current window with rank change.

        Args:
            period: WEEKLY or MONTHLY
            department: Department filter (None for everyone)
            limit: Maximum entries (clamped to max_limit)
            now: Reference time (defaults to current UTC time)

        Returns:
            LeaderboardSnapshot ordered by rank
        """
        now = now or utc_now()
        start = self._window_start(period, now)
        previous_ranks = await self._baseline(
            period, previous_window_start(period, start), department
        )
        standings = await self.store.standings(bucket_key(period, start, department))
        return LeaderboardSnapshot(
            period=period,
            window_start=start,
            window_end=next_window_start(period, start),
            department=department,
            entries=build_entries(standings, previous_ranks, self._clamp_limit(limit)),
            frozen=False,
        )

    async def close_period(
        self,
        period: LeaderboardPeriod,
        department: str | None = None,
        window_start_at: datetime | None = None,
        now: datetime | None = None,
    ) -> LeaderboardSnapshot:
        """Freeze a window that has ended (the previous one by default).

        Raises:
            LeaderboardWindowOpenError: The window has not ended yet
        """
        now = now or utc_now()
        current = self._window_start(period, now)
        if window_start_at is None:
            start = previous_window_start(period, current)
        else:
            start = self._window_start(period, window_start_at)
        if start >= current:
            raise LeaderboardWindowOpenError(period.value, start)

        key = bucket_key(period, start, department)
        if await self.store.is_closed(key):
            ranks = await self.store.frozen_ranks(key)
        else:
            ranks = await self._freeze(period, start, department)

        standings = [s for s in await self.store.standings(key) if s.user_id in ranks]
        previous_key = bucket_key(period, previous_window_start(period, start), department)
        previous_ranks = (
            await self.store.frozen_ranks(previous_key)
            if await self.store.is_closed(previous_key)
            else {}
        )
        return LeaderboardSnapshot(
            period=period,
            window_start=start,
            window_end=next_window_start(period, start),
            department=department,
            entries=build_entries(standings, previous_ranks),
            frozen=True,
        )
