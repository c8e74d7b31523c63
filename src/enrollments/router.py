"""Enrollment API endpoints.

Provides routes for:
- Enrollment in a learning path
- Drop (single and bulk)
- Enrollment queries and progress summary
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.core.exceptions import LearningHubError
from src.core.http_errors import handle_learning_error

from .dependencies import EnrollmentManagerDep
from .schemas import (
    BulkDropRequest,
    BulkDropResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    ProgressSummaryResponse,
)


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in learning path",
)
async def enroll(
    data: EnrollRequest,
    manager: EnrollmentManagerDep,
) -> EnrollmentResponse:
    """Enroll a user in a published learning path.

    Returns 409 with the existing enrollment id when the user already has an
    active enrollment for the path.
    """
    try:
        enrollment = await manager.enroll(data.user_id, data.path_id)
        return EnrollmentResponse.from_entity(enrollment)
    except LearningHubError as e:
        raise handle_learning_error(e) from e


@router.post(
    "/drop",
    response_model=BulkDropResponse,
    summary="Drop several enrollments",
)
async def drop_many(
    data: BulkDropRequest,
    manager: EnrollmentManagerDep,
) -> BulkDropResponse:
    results = await manager.drop_many(data.enrollment_ids)
    dropped = sum(1 for r in results if r.success)
    return BulkDropResponse(results=results, dropped=dropped, failed=len(results) - dropped)


@router.get(
    "/user/{user_id}",
    response_model=EnrollmentListResponse,
    summary="List user enrollments",
)
async def list_user_enrollments(
    user_id: UUID,
    manager: EnrollmentManagerDep,
) -> EnrollmentListResponse:
    enrollments = await manager.list_user_enrollments(user_id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: UUID,
    manager: EnrollmentManagerDep,
) -> EnrollmentResponse:
    try:
        enrollment = await manager.get_enrollment(enrollment_id)
        return EnrollmentResponse.from_entity(enrollment)
    except LearningHubError as e:
        raise handle_learning_error(e) from e


@router.post(
    "/{enrollment_id}/drop",
    response_model=EnrollmentResponse,
    summary="Drop enrollment",
)
async def drop(
    enrollment_id: UUID,
    manager: EnrollmentManagerDep,
) -> EnrollmentResponse:
    """Drop an active enrollment. Points already earned are kept."""
    try:
        enrollment = await manager.drop(enrollment_id)
        return EnrollmentResponse.from_entity(enrollment)
    except LearningHubError as e:
        raise handle_learning_error(e) from e


@router.get(
    "/{enrollment_id}/progress",
    response_model=ProgressSummaryResponse,
    summary="Get progress summary",
)
async def get_progress_summary(
    enrollment_id: UUID,
    manager: EnrollmentManagerDep,
) -> ProgressSummaryResponse:
    try:
        return await manager.get_progress_summary(enrollment_id)
    except LearningHubError as e:
        raise handle_learning_error(e) from e
