"""Cassandra persistence for module progress.

All writes that move the state machine forward are lightweight
transactions; callers read ``was_applied`` to learn whether they won.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import COMPLETABLE_STATUSES, ModuleProgress, ModuleProgressStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class ModuleProgressRepository:
    """Module progress rows keyed by (enrollment_id, module_id)."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        completable = ", ".join(f"'{s}'" for s in COMPLETABLE_STATUSES)

        self._get = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.module_progress
            WHERE enrollment_id = ? AND module_id = ?
        """)

        self._list_for_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.module_progress
            WHERE enrollment_id = ?
        """)

        self._insert_if_absent = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.module_progress
            (enrollment_id, module_id, user_id, status, points_earned,
             best_quiz_score, started_at, completed_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._mark_started = self.session.prepare(f"""
            UPDATE {self.keyspace}.module_progress
            SET status = '{ModuleProgressStatus.IN_PROGRESS.value}',
                started_at = ?, updated_at = ?
            WHERE enrollment_id = ? AND module_id = ?
            IF status = '{ModuleProgressStatus.NOT_STARTED.value}'
        """)

        self._mark_completed = self.session.prepare(f"""
            UPDATE {self.keyspace}.module_progress
            SET status = '{ModuleProgressStatus.COMPLETED.value}',
                points_earned = ?, completed_at = ?, updated_at = ?
            WHERE enrollment_id = ? AND module_id = ?
            IF status IN ({completable})
        """)

        self._set_best_quiz_score = self.session.prepare(f"""
            UPDATE {self.keyspace}.module_progress
            SET best_quiz_score = ?, updated_at = ?
            WHERE enrollment_id = ? AND module_id = ?
            IF best_quiz_score = ?
        """)

    async def get(self, enrollment_id: UUID, module_id: UUID) -> ModuleProgress | None:
        result = await self.session.aexecute(self._get, [enrollment_id, module_id])
        row = result.one()
        return ModuleProgress.from_row(row) if row else None

    async def list_for_enrollment(self, enrollment_id: UUID) -> dict[UUID, ModuleProgress]:
        """All progress rows of an enrollment keyed by module id."""
        rows = await self.session.aexecute(self._list_for_enrollment, [enrollment_id])
        return {row.module_id: ModuleProgress.from_row(row) for row in rows}

    async def create_if_absent(self, progress: ModuleProgress) -> bool:
        """Insert a new progress row; False if one already exists."""
        result = await self.session.aexecute(
            self._insert_if_absent,
            [
                progress.enrollment_id,
                progress.module_id,
                progress.user_id,
                progress.status,
                progress.points_earned,
                progress.best_quiz_score,
                progress.started_at,
                progress.completed_at,
                progress.updated_at,
            ],
        )
        return result.was_applied

    async def mark_started(
        self, enrollment_id: UUID, module_id: UUID, started_at: datetime
    ) -> bool:
        """NOT_STARTED -> IN_PROGRESS; False when the row moved on already."""
        result = await self.session.aexecute(
            self._mark_started, [started_at, started_at, enrollment_id, module_id]
        )
        return result.was_applied

    async def mark_completed(
        self,
        enrollment_id: UUID,
        module_id: UUID,
        points_earned: int,
        completed_at: datetime,
    ) -> bool:
        """Move an existing row to COMPLETED unless it is COMPLETED already."""
        result = await self.session.aexecute(
            self._mark_completed,
            [points_earned, completed_at, completed_at, enrollment_id, module_id],
        )
        return result.was_applied

    async def set_best_quiz_score(
        self,
        enrollment_id: UUID,
        module_id: UUID,
        score: int,
        expected: int | None,
        updated_at: datetime,
    ) -> bool:
        """Compare-and-set the best quiz score against the value last read."""
        result = await self.session.aexecute(
            self._set_best_quiz_score,
            [score, updated_at, enrollment_id, module_id, expected],
        )
        return result.was_applied
