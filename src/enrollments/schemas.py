"""Pydantic schemas for enrollments.

Request and response models for:
- Enrollment and drop (single and bulk)
- Progress summary of an enrollment
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.progress.models import ModuleProgressStatus

from .models import Enrollment, EnrollmentStatus


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll a user in a learning path."""

    user_id: UUID = Field(..., description="Learner UUID")
    path_id: UUID = Field(..., description="Learning path UUID")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    path_id: UUID
    status: EnrollmentStatus
    progress_percent: int = Field(ge=0, le=100)
    certificate_id: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    dropped_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            path_id=entity.path_id,
            status=EnrollmentStatus(entity.status),
            progress_percent=entity.progress_percent,
            certificate_id=entity.certificate_id,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            dropped_at=entity.dropped_at,
        )


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int


# ==============================================================================
# Bulk Drop Schemas
# ==============================================================================


class BulkDropRequest(BaseModel):
    """Drop several enrollments, one by one."""

    enrollment_ids: list[UUID] = Field(..., min_length=1, max_length=500)


class DropOutcome(BaseModel):
    """Result of dropping one enrollment in a bulk request."""

    enrollment_id: UUID
    success: bool
    status: EnrollmentStatus | None = None
    error_code: str | None = None
    error_message: str | None = None


class BulkDropResponse(BaseModel):
    results: list[DropOutcome]
    dropped: int
    failed: int


# ==============================================================================
# Progress Summary Schemas
# ==============================================================================


class ModuleProgressSummary(BaseModel):
    """Module entry of a progress summary."""

    module_id: UUID
    order_index: int
    title: str = ""
    content_type: str
    status: ModuleProgressStatus
    completion_points: int
    points_earned: int | None = None
    best_quiz_score: int | None = None
    completed_at: datetime | None = None
    quiz_id: UUID | None = None
    unmet_prerequisite_ids: list[UUID] = Field(
        default_factory=list,
        description="Prerequisites still to complete (empty when unlocked)",
    )


class ProgressSummaryResponse(BaseModel):
    """Complete progress of one enrollment."""

    enrollment_id: UUID
    user_id: UUID
    path_id: UUID
    status: EnrollmentStatus
    progress_percent: int
    modules_completed: int
    modules_total: int
    points_earned: int
    certificate_id: str | None = None
    completed_at: datetime | None = None
    modules: list[ModuleProgressSummary] = []
