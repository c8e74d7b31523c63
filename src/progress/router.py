"""Module progress API endpoints.

Provides routes for:
- Starting a module
- Completing a module (prerequisite and quiz gated)
- Module progress queries
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.core.exceptions import LearningHubError
from src.core.http_errors import handle_learning_error

from .dependencies import ProgressTrackerDep
from .schemas import ModuleProgressResponse


router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.post(
    "/{enrollment_id}/modules/{module_id}/start",
    response_model=ModuleProgressResponse,
    status_code=status.HTTP_200_OK,
    summary="Start module",
)
async def start_module(
    enrollment_id: UUID,
    module_id: UUID,
    tracker: ProgressTrackerDep,
) -> ModuleProgressResponse:
    """Move a module to in_progress. Idempotent."""
    try:
        progress = await tracker.start_module(enrollment_id, module_id)
        return ModuleProgressResponse.from_entity(progress)
    except LearningHubError as e:
        raise handle_learning_error(e) from e


@router.post(
    "/{enrollment_id}/modules/{module_id}/complete",
    response_model=ModuleProgressResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete module",
)
async def complete_module(
    enrollment_id: UUID,
    module_id: UUID,
    tracker: ProgressTrackerDep,
) -> ModuleProgressResponse:
    """Mark a module as completed.

    Fails with 422 while prerequisites are incomplete (the unmet module ids
    are returned in the error details) or while the gating quiz has no
    passing attempt. Completing an already completed module returns its
    stored state.
    """
    try:
        progress = await tracker.complete_module(enrollment_id, module_id)
        return ModuleProgressResponse.from_entity(progress)
    except LearningHubError as e:
        raise handle_learning_error(e) from e


@router.get(
    "/{enrollment_id}/modules/{module_id}",
    response_model=ModuleProgressResponse,
    summary="Get module progress",
)
async def get_module_progress(
    enrollment_id: UUID,
    module_id: UUID,
    tracker: ProgressTrackerDep,
) -> ModuleProgressResponse:
    try:
        progress = await tracker.get_module_progress(enrollment_id, module_id)
        return ModuleProgressResponse.from_entity(progress)
    except LearningHubError as e:
        raise handle_learning_error(e) from e
