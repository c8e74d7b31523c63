"""Cassandra persistence for enrollments."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import ActiveSlot, Enrollment, EnrollmentStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

_ACTIVE = EnrollmentStatus.ACTIVE.value


class EnrollmentRepository:
    """Enrollment rows, the by-user lookup and the ACTIVE slot table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments WHERE id = ?
        """)

        self._insert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (id, user_id, path_id, status, progress_percent, certificate_id,
             started_at, completed_at, dropped_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, started_at, enrollment_id, path_id)
            VALUES (?, ?, ?, ?)
        """)

        self._list_by_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user WHERE user_id = ?
        """)

        # ACTIVE slot
        self._get_active = self.session.prepare(f"""
            SELECT enrollment_id, claimed_at FROM {self.keyspace}.active_enrollments
            WHERE user_id = ? AND path_id = ?
        """)

        self._claim_active = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.active_enrollments
            (user_id, path_id, enrollment_id, claimed_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_active = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.active_enrollments
            WHERE user_id = ? AND path_id = ?
            IF enrollment_id = ?
        """)

        # State transitions
        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET progress_percent = ?, updated_at = ?
            WHERE id = ?
            IF status = '{_ACTIVE}' AND progress_percent < ?
        """)

        self._mark_completed = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = '{EnrollmentStatus.COMPLETED.value}', progress_percent = 100,
                completed_at = ?, certificate_id = ?, updated_at = ?
            WHERE id = ?
            IF status = '{_ACTIVE}'
        """)

        self._mark_dropped = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = '{EnrollmentStatus.DROPPED.value}',
                dropped_at = ?, updated_at = ?
            WHERE id = ?
            IF status = '{_ACTIVE}'
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        """Enrollments of a user, most recent first."""
        rows = await self.session.aexecute(self._list_by_user, [user_id])
        enrollments = []
        for row in rows:
            enrollment = await self.get(row.enrollment_id)
            if enrollment:
                enrollments.append(enrollment)
        return enrollments

    async def get_active_slot(self, user_id: UUID, path_id: UUID) -> ActiveSlot | None:
        result = await self.session.aexecute(self._get_active, [user_id, path_id])
        row = result.one()
        return ActiveSlot.from_row(row) if row else None

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def claim_active_slot(
        self, user_id: UUID, path_id: UUID, enrollment_id: UUID, claimed_at: datetime
    ) -> UUID | None:
        """Claim the ACTIVE slot.

        Returns:
            None when claimed, otherwise the enrollment id holding the slot
        """
        result = await self.session.aexecute(
            self._claim_active, [user_id, path_id, enrollment_id, claimed_at]
        )
        if result.was_applied:
            return None
        return result.one().enrollment_id

    async def release_active_slot(
        self, user_id: UUID, path_id: UUID, enrollment_id: UUID
    ) -> None:
        await self.session.aexecute(
            self._release_active, [user_id, path_id, enrollment_id]
        )

    async def insert(self, enrollment: Enrollment) -> None:
        """Dual write: main table + lookup table."""
        await self.session.aexecute(
            self._insert,
            [
                enrollment.id,
                enrollment.user_id,
                enrollment.path_id,
                enrollment.status,
                enrollment.progress_percent,
                enrollment.certificate_id,
                enrollment.started_at,
                enrollment.completed_at,
                enrollment.dropped_at,
                enrollment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_by_user,
            [enrollment.user_id, enrollment.started_at, enrollment.id, enrollment.path_id],
        )

    async def update_progress(
        self, enrollment_id: UUID, progress_percent: int, updated_at: datetime
    ) -> bool:
        """Raise progress of an ACTIVE enrollment; never lowers it."""
        result = await self.session.aexecute(
            self._update_progress,
            [progress_percent, updated_at, enrollment_id, progress_percent],
        )
        return result.was_applied

    async def mark_completed(
        self, enrollment_id: UUID, certificate_id: str, completed_at: datetime
    ) -> bool:
        """ACTIVE -> COMPLETED; False if the enrollment already left ACTIVE."""
        result = await self.session.aexecute(
            self._mark_completed,
            [completed_at, certificate_id, completed_at, enrollment_id],
        )
        return result.was_applied

    async def mark_dropped(self, enrollment_id: UUID, dropped_at: datetime) -> bool:
        """ACTIVE -> DROPPED; False if the enrollment already left ACTIVE."""
        result = await self.session.aexecute(
            self._mark_dropped, [dropped_at, dropped_at, enrollment_id]
        )
        return result.was_applied
