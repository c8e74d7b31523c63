"""Pydantic schemas for module progress.

Response models for:
- Module start and completion
- Single module progress queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import ModuleProgress, ModuleProgressStatus


class ModuleProgressResponse(BaseModel):
    """Progress of one module inside an enrollment."""

    model_config = ConfigDict(from_attributes=True)

    enrollment_id: UUID
    module_id: UUID
    user_id: UUID
    status: ModuleProgressStatus
    points_earned: int | None = Field(None, description="Set once, on first completion")
    best_quiz_score: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: ModuleProgress) -> "ModuleProgressResponse":
        """Create response from entity."""
        return cls(
            enrollment_id=entity.enrollment_id,
            module_id=entity.module_id,
            user_id=entity.user_id,
            status=ModuleProgressStatus(entity.status),
            points_earned=entity.points_earned,
            best_quiz_score=entity.best_quiz_score,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
        )
