"""Cassandra persistence for quiz attempts and attempt allowances."""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import QuizAttempt


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class QuizAttemptRepository:
    """Append-only attempt store."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._list_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE quiz_id = ? AND enrollment_id = ?
        """)

        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (quiz_id, enrollment_id, attempt_number, id, user_id, raw_answers,
             score_percent, passed, earned_points, total_points,
             question_results, submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_allowance = self.session.prepare(f"""
            SELECT extra_attempts FROM {self.keyspace}.quiz_attempt_allowances
            WHERE quiz_id = ? AND enrollment_id = ?
        """)

        self._add_allowance = self.session.prepare(f"""
            UPDATE {self.keyspace}.quiz_attempt_allowances
            SET extra_attempts = extra_attempts + ?
            WHERE quiz_id = ? AND enrollment_id = ?
        """)

    async def list_attempts(self, quiz_id: UUID, enrollment_id: UUID) -> list[QuizAttempt]:
        """Attempts ordered by attempt number."""
        rows = await self.session.aexecute(self._list_attempts, [quiz_id, enrollment_id])
        return [QuizAttempt.from_row(row) for row in rows]

    async def insert_if_absent(self, attempt: QuizAttempt) -> bool:
        """Store an attempt; False if its attempt number is already taken."""
        result = await self.session.aexecute(
            self._insert_attempt,
            [
                attempt.quiz_id,
                attempt.enrollment_id,
                attempt.attempt_number,
                attempt.id,
                attempt.user_id,
                attempt.raw_answers,
                attempt.score_percent,
                attempt.passed,
                attempt.earned_points,
                attempt.total_points,
                attempt.question_results_json(),
                attempt.submitted_at,
            ],
        )
        return result.was_applied

    async def get_extra_attempts(self, quiz_id: UUID, enrollment_id: UUID) -> int:
        result = await self.session.aexecute(self._get_allowance, [quiz_id, enrollment_id])
        row = result.one()
        return row.extra_attempts if row and row.extra_attempts else 0

    async def add_extra_attempts(self, quiz_id: UUID, enrollment_id: UUID, count: int) -> None:
        await self.session.aexecute(self._add_allowance, [count, quiz_id, enrollment_id])
