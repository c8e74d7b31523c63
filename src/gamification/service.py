"""Gamification ledger service layer.

Business logic for:
- Crediting completion points exactly once per (enrollment, module)
- Daily streak tracking
- Level recompute from total points
- Points history

Every mutation is a read-modify-write of the user's versioned record,
committed with a compare-and-set and retried on conflict.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime
from uuid import NAMESPACE_URL, UUID, uuid5

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.exceptions import ConcurrencyConflictError
from src.progress.models import CompletionEvent
from src.utils.dates import utc_now

from .models import PointsTransaction, TransactionSource, UserGamificationState
from .repository import GamificationRepository
from .rules import LevelProgress, level_for_points, level_progress, next_streak


logger = structlog.get_logger(__name__)

PointsListener = Callable[[UUID, int, datetime, str], object]
Mutation = Callable[[UserGamificationState], UserGamificationState | None]


class GamificationLedger:
    """Sole writer of points, streaks and levels."""

    def __init__(
        self,
        repository: GamificationRepository,
        points_per_level: int = 1000,
        max_level: int = 10,
        max_retries: int = 5,
        retry_base_delay: float = 0.01,
        on_points_credited: PointsListener | None = None,
    ):
        self.repository = repository
        self.points_per_level = points_per_level
        self.max_level = max_level
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.on_points_credited = on_points_credited

    # ==========================================================================
    # Compare-and-set loop
    # ==========================================================================

    async def _apply(
        self, user_id: UUID, mutate: Mutation
    ) -> tuple[UserGamificationState, UserGamificationState | None]:
        """Run ``mutate`` against the latest state until the write wins.

        Returns:
            (state before, state after); after is None when nothing changed

        Raises:
            ConcurrencyConflictError: Still conflicting after max_retries
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=1),
            retry=retry_if_exception_type(ConcurrencyConflictError),
            reraise=True,
        ):
            with attempt:
                before = await self.repository.get_state(user_id) or UserGamificationState(user_id)
                after = mutate(before)
                if after is None:
                    return before, None

                if not await self.repository.compare_and_set(after, before.version):
                    logger.info(
                        "ledger_conflict_retry",
                        user_id=str(user_id),
                        version=before.version,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise ConcurrencyConflictError("user_gamification", user_id)
                return before, after

        raise ConcurrencyConflictError("user_gamification", user_id)

    def _next(
        self,
        state: UserGamificationState,
        *,
        points: int = 0,
        activity_date: date | None = None,
        credited_key: str | None = None,
    ) -> UserGamificationState:
        """New record with points added, activity touched and level recomputed."""
        total = state.total_points + points
        if activity_date is not None:
            streak = next_streak(
                state.current_streak_days,
                state.longest_streak_days,
                state.last_activity_date,
                activity_date,
            )
        else:
            streak = None

        keys = state.credited_keys | {credited_key} if credited_key else state.credited_keys
        return UserGamificationState(
            user_id=state.user_id,
            total_points=total,
            current_level=level_for_points(total, self.points_per_level, self.max_level),
            current_streak_days=streak.current_days if streak else state.current_streak_days,
            longest_streak_days=streak.longest_days if streak else state.longest_streak_days,
            last_activity_date=streak.last_activity_date if streak else state.last_activity_date,
            credited_keys=keys,
            version=state.version + 1,
            updated_at=utc_now(),
        )

    # ==========================================================================
    # Operations
    # ==========================================================================

    async def credit_completion(self, event: CompletionEvent) -> UserGamificationState:
        """Credit a module completion once, as one atomic update.

        Adds the points, touches the streak for the event's UTC date and
        recomputes the level. A redelivered completion is not credited again,
        but its history row and leaderboard update are replayed, since the
        first delivery may have failed after the commit.

        Args:
            event: Completion event carrying the idempotency key

        Returns:
            The user's state after the credit (or as stored, for duplicates)
        """
        key = event.idempotency_key
        activity_date = event.occurred_at.astimezone(UTC).date()

        def mutate(state: UserGamificationState) -> UserGamificationState | None:
            if state.has_credited(key):
                return None
            return self._next(
                state, points=event.points, activity_date=activity_date, credited_key=key
            )

        before, after = await self._apply(event.user_id, mutate)
        if after is None:
            logger.info(
                "completion_already_credited",
                user_id=str(event.user_id),
                idempotency_key=key,
            )
            await self._record_credit(event, balance=before.total_points)
            return before

        logger.info(
            "points_credited",
            user_id=str(event.user_id),
            points=event.points,
            total_points=after.total_points,
            streak_days=after.current_streak_days,
            idempotency_key=key,
        )
        if after.current_level > before.current_level:
            logger.info(
                "level_up",
                user_id=str(event.user_id),
                previous_level=before.current_level,
                level=after.current_level,
            )

        await self._record_credit(event, balance=after.total_points)
        return after

    async def _record_credit(self, event: CompletionEvent, balance: int) -> None:
        """History row and leaderboard update of a committed credit.

        Both are keyed by the event, so running them again is harmless.
        """
        key = event.idempotency_key
        written = await self.repository.add_transaction(
            PointsTransaction(
                id=uuid5(NAMESPACE_URL, f"completion:{key}"),
                user_id=event.user_id,
                amount=event.points,
                balance=balance,
                source=TransactionSource.MODULE_COMPLETION.value,
                source_id=key,
                description="Module completed",
                created_at=event.occurred_at,
            )
        )
        if written:
            logger.debug("points_transaction_written", user_id=str(event.user_id), source_id=key)

        if self.on_points_credited and event.points > 0:
            self.on_points_credited(event.user_id, event.points, event.occurred_at, key)

    async def touch_activity(self, user_id: UUID, activity_date: date) -> UserGamificationState:
        """Record activity on ``activity_date`` and update the streak."""

        def mutate(state: UserGamificationState) -> UserGamificationState | None:
            updated = self._next(state, activity_date=activity_date)
            if (
                updated.current_streak_days == state.current_streak_days
                and updated.last_activity_date == state.last_activity_date
            ):
                return None
            return updated

        before, after = await self._apply(user_id, mutate)
        if after is None:
            return before

        logger.info(
            "streak_updated",
            user_id=str(user_id),
            streak_days=after.current_streak_days,
            longest_streak_days=after.longest_streak_days,
        )
        return after

    async def recompute_level(self, user_id: UUID) -> UserGamificationState:
        """Recompute the level from total points (capped at max level)."""

        def mutate(state: UserGamificationState) -> UserGamificationState | None:
            level = level_for_points(state.total_points, self.points_per_level, self.max_level)
            if level == state.current_level:
                return None
            return self._next(state)

        before, after = await self._apply(user_id, mutate)
        return after or before

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_state(self, user_id: UUID) -> UserGamificationState:
        """Stored state, or a fresh level-1 state for users without activity."""
        return await self.repository.get_state(user_id) or UserGamificationState(user_id)

    def get_level_progress(self, state: UserGamificationState) -> LevelProgress:
        return level_progress(state.total_points, self.points_per_level, self.max_level)

    async def list_transactions(self, user_id: UUID, limit: int = 50) -> list[PointsTransaction]:
        return await self.repository.list_transactions(user_id, limit)
