"""Database models for learning path enrollments.

Cassandra table definitions for:
- Enrollments: State machine and path-level progress
- Lookup tables: Enrollments by user, and the single ACTIVE slot per
  (user, path)

Architecture: the ACTIVE slot is claimed with ``INSERT ... IF NOT EXISTS``
and released when the enrollment reaches a terminal state, so two
concurrent enroll requests can never both create an ACTIVE enrollment.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware, utc_now


class EnrollmentStatus(str, Enum):
    """Enrollment status; COMPLETED and DROPPED are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    id UUID PRIMARY KEY,
    user_id UUID,
    path_id UUID,
    status TEXT,
    progress_percent INT,
    certificate_id TEXT,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    dropped_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Lookup: enrollments by user, most recent first
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    started_at TIMESTAMP,
    enrollment_id UUID,
    path_id UUID,
    PRIMARY KEY (user_id, started_at, enrollment_id)
) WITH CLUSTERING ORDER BY (started_at DESC, enrollment_id ASC)
"""

# One row per ACTIVE enrollment; the row is the uniqueness lock
ACTIVE_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.active_enrollments (
    user_id UUID,
    path_id UUID,
    enrollment_id UUID,
    claimed_at TIMESTAMP,
    PRIMARY KEY ((user_id, path_id))
)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    ACTIVE_ENROLLMENTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """A user's attempt at one learning path.

    Attributes:
        id: Enrollment UUID
        user_id: Learner UUID
        path_id: Learning path UUID
        status: active, completed or dropped
        progress_percent: Completed modules over path modules (0-100)
        certificate_id: Opaque token, set only on completion
        started_at: Enrollment timestamp
        completed_at: Completion timestamp
        dropped_at: Drop timestamp
    """

    def __init__(
        self,
        id: UUID,
        user_id: UUID,
        path_id: UUID,
        status: str = EnrollmentStatus.ACTIVE.value,
        progress_percent: int = 0,
        certificate_id: str | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        dropped_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id
        self.user_id = user_id
        self.path_id = path_id
        self.status = status
        self.progress_percent = progress_percent
        self.certificate_id = certificate_id
        self.started_at = ensure_utc_aware(started_at) or utc_now()
        self.completed_at = ensure_utc_aware(completed_at)
        self.dropped_at = ensure_utc_aware(dropped_at)
        self.updated_at = ensure_utc_aware(updated_at) or self.started_at

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE.value

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED.value

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            path_id=row.path_id,
            status=row.status or EnrollmentStatus.ACTIVE.value,
            progress_percent=row.progress_percent or 0,
            certificate_id=row.certificate_id,
            started_at=row.started_at,
            completed_at=row.completed_at,
            dropped_at=row.dropped_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "path_id": self.path_id,
            "status": self.status,
            "progress_percent": self.progress_percent,
            "certificate_id": self.certificate_id,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "dropped_at": self.dropped_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment {self.id} user={self.user_id} path={self.path_id} "
            f"{self.status} {self.progress_percent}%>"
        )


class ActiveSlot:
    """Holder of the single ACTIVE slot of a (user, path)."""

    def __init__(self, enrollment_id: UUID, claimed_at: datetime | None = None):
        self.enrollment_id = enrollment_id
        self.claimed_at = ensure_utc_aware(claimed_at)

    @classmethod
    def from_row(cls, row: Any) -> "ActiveSlot":
        return cls(enrollment_id=row.enrollment_id, claimed_at=row.claimed_at)
