"""Cassandra persistence for the gamification ledger."""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import PointsTransaction, UserGamificationState


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class GamificationRepository:
    """Versioned per-user state and the transactions history."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_state = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.user_gamification WHERE user_id = ?
        """)

        self._insert_state = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.user_gamification
            (user_id, total_points, current_level, current_streak_days,
             longest_streak_days, last_activity_date, credited_keys, version, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_state = self.session.prepare(f"""
            UPDATE {self.keyspace}.user_gamification
            SET total_points = ?, current_level = ?, current_streak_days = ?,
                longest_streak_days = ?, last_activity_date = ?,
                credited_keys = credited_keys + ?, version = ?, updated_at = ?
            WHERE user_id = ?
            IF version = ?
        """)

        self._insert_transaction = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.points_transactions
            (user_id, created_at, id, amount, balance, source, source_id, description)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._list_transactions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.points_transactions
            WHERE user_id = ? LIMIT ?
        """)

    async def get_state(self, user_id: UUID) -> UserGamificationState | None:
        result = await self.session.aexecute(self._get_state, [user_id])
        row = result.one()
        return UserGamificationState.from_row(row) if row else None

    async def compare_and_set(
        self, state: UserGamificationState, expected_version: int
    ) -> bool:
        """Store ``state`` if the stored version still equals ``expected_version``.

        ``state.version`` must already be ``expected_version + 1``. Version 0
        means no row was stored yet, so the write is an insert-if-absent.

        Returns:
            True if the write won, False on a concurrent update
        """
        if expected_version == 0:
            result = await self.session.aexecute(
                self._insert_state,
                [
                    state.user_id,
                    state.total_points,
                    state.current_level,
                    state.current_streak_days,
                    state.longest_streak_days,
                    state.last_activity_date,
                    set(state.credited_keys),
                    state.version,
                    state.updated_at,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._update_state,
                [
                    state.total_points,
                    state.current_level,
                    state.current_streak_days,
                    state.longest_streak_days,
                    state.last_activity_date,
                    set(state.credited_keys),
                    state.version,
                    state.updated_at,
                    state.user_id,
                    expected_version,
                ],
            )
        return result.was_applied

    async def add_transaction(self, transaction: PointsTransaction) -> bool:
        """Insert a history row once; a replayed credit keeps the original row.

        Returns:
            True if written, False if the row already existed
        """
        result = await self.session.aexecute(
            self._insert_transaction,
            [
                transaction.user_id,
                transaction.created_at,
                transaction.id,
                transaction.amount,
                transaction.balance,
                transaction.source,
                transaction.source_id,
                transaction.description,
            ],
        )
        return result.was_applied

    async def list_transactions(self, user_id: UUID, limit: int = 50) -> list[PointsTransaction]:
        """Most recent transactions first."""
        rows = await self.session.aexecute(self._list_transactions, [user_id, limit])
        return [PointsTransaction.from_row(row) for row in rows]
