"""Database models for per-module progress.

Cassandra table definitions for:
- Module progress: Completion state machine per (enrollment, module)

Architecture: one partition per enrollment so a progress summary is a
single-partition read. State transitions are lightweight transactions,
which makes a COMPLETED transition happen exactly once even when the same
request is retried concurrently.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware, utc_now


class ModuleProgressStatus(str, Enum):
    """Module progress status (monotonic)."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Statuses a module may be completed from
COMPLETABLE_STATUSES = (
    ModuleProgressStatus.NOT_STARTED.value,
    ModuleProgressStatus.IN_PROGRESS.value,
)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition key: enrollment_id, so the whole enrollment is read at once
MODULE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_progress (
    enrollment_id UUID,
    module_id UUID,
    user_id UUID,
    status TEXT,
    points_earned INT,
    best_quiz_score INT,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (enrollment_id, module_id)
)
"""

PROGRESS_TABLES_CQL = [
    MODULE_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ModuleProgress:
    """Progress of one module inside one enrollment.

    A missing row is equivalent to NOT_STARTED.

    Attributes:
        enrollment_id: Enrollment UUID (partition key)
        module_id: Module UUID
        user_id: Learner UUID
        status: not_started, in_progress or completed
        points_earned: Set once, on the first COMPLETED transition
        best_quiz_score: Highest quiz score seen for the module's quiz
        started_at: First start timestamp
        completed_at: Completion timestamp
    """

    def __init__(
        self,
        enrollment_id: UUID,
        module_id: UUID,
        user_id: UUID,
        status: str = ModuleProgressStatus.NOT_STARTED.value,
        points_earned: int | None = None,
        best_quiz_score: int | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.enrollment_id = enrollment_id
        self.module_id = module_id
        self.user_id = user_id
        self.status = status
        self.points_earned = points_earned
        self.best_quiz_score = best_quiz_score
        self.started_at = ensure_utc_aware(started_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.updated_at = ensure_utc_aware(updated_at) or utc_now()

    @property
    def is_completed(self) -> bool:
        return self.status == ModuleProgressStatus.COMPLETED.value

    @property
    def is_started(self) -> bool:
        return self.status != ModuleProgressStatus.NOT_STARTED.value

    @classmethod
    def from_row(cls, row: Any) -> "ModuleProgress":
        """Create ModuleProgress instance from Cassandra row."""
        return cls(
            enrollment_id=row.enrollment_id,
            module_id=row.module_id,
            user_id=row.user_id,
            status=row.status or ModuleProgressStatus.NOT_STARTED.value,
            points_earned=row.points_earned,
            best_quiz_score=row.best_quiz_score,
            started_at=row.started_at,
            completed_at=row.completed_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "enrollment_id": self.enrollment_id,
            "module_id": self.module_id,
            "user_id": self.user_id,
            "status": self.status,
            "points_earned": self.points_earned,
            "best_quiz_score": self.best_quiz_score,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<ModuleProgress enrollment={self.enrollment_id} "
            f"module={self.module_id} {self.status}>"
        )


@dataclass(frozen=True)
class CompletionEvent:
    """Emitted once per first COMPLETED transition of a module."""

    enrollment_id: UUID
    module_id: UUID
    user_id: UUID
    path_id: UUID
    points: int
    occurred_at: datetime = field(default_factory=utc_now)

    @property
    def idempotency_key(self) -> str:
        return f"{self.enrollment_id}:{self.module_id}"
