"""Quiz attempt API endpoints.

Provides routes for:
- Attempt submission (graded synchronously)
- Attempt history per enrollment
- Extra attempts (admin override)
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.core.exceptions import LearningHubError
from src.core.http_errors import handle_learning_error
from src.progress.dependencies import ProgressTrackerDep
from src.users.dependencies import AdminUser

from .dependencies import QuizGraderDep
from .schemas import (
    AttemptAllowanceResponse,
    GrantAttemptsRequest,
    QuizAttemptListResponse,
    QuizAttemptResponse,
    SubmitAttemptRequest,
    SubmitAttemptResponse,
)


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


@router.post(
    "/{quiz_id}/attempts",
    response_model=SubmitAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz attempt",
)
async def submit_attempt(
    quiz_id: UUID,
    data: SubmitAttemptRequest,
    grader: QuizGraderDep,
    tracker: ProgressTrackerDep,
) -> SubmitAttemptResponse:
    """Grade a quiz attempt.

    The score is the weighted share of correct answers rounded half-up;
    the attempt passes when it reaches the quiz's passing score. The best
    score is recorded on the module's progress.
    """
    try:
        quiz = await grader.get_quiz(quiz_id)
        attempt = await grader.submit_attempt(quiz_id, data.enrollment_id, data.answers)
        await tracker.record_quiz_result(attempt, quiz)
        allowance = await grader.get_allowance(quiz, data.enrollment_id)
    except LearningHubError as e:
        raise handle_learning_error(e) from e

    base = QuizAttemptResponse.from_entity(attempt)
    return SubmitAttemptResponse(
        **base.model_dump(),
        attempts_used=allowance.used,
        attempts_remaining=allowance.remaining,
    )


@router.get(
    "/{quiz_id}/attempts",
    response_model=QuizAttemptListResponse,
    summary="List quiz attempts",
)
async def list_attempts(
    quiz_id: UUID,
    grader: QuizGraderDep,
    enrollment_id: UUID = Query(..., description="Enrollment UUID"),
) -> QuizAttemptListResponse:
    try:
        attempts = await grader.list_attempts(quiz_id, enrollment_id)
        best = await grader.best_passing_attempt(quiz_id, enrollment_id)
    except LearningHubError as e:
        raise handle_learning_error(e) from e

    return QuizAttemptListResponse(
        items=[QuizAttemptResponse.from_entity(a) for a in attempts],
        total=len(attempts),
        best_passing_attempt_id=best.id if best else None,
    )


@router.post(
    "/{quiz_id}/allowances",
    response_model=AttemptAllowanceResponse,
    summary="Grant extra attempts (admin)",
)
async def grant_extra_attempts(
    quiz_id: UUID,
    data: GrantAttemptsRequest,
    grader: QuizGraderDep,
    admin: AdminUser,
) -> AttemptAllowanceResponse:
    """Admin override for exhausted attempts."""
    try:
        allowance = await grader.grant_extra_attempts(
            quiz_id, data.enrollment_id, data.extra_attempts, granted_by=admin.id
        )
    except LearningHubError as e:
        raise handle_learning_error(e) from e

    return AttemptAllowanceResponse(
        quiz_id=quiz_id,
        enrollment_id=data.enrollment_id,
        attempts_used=allowance.used,
        attempts_allowed=allowance.allowed,
        attempts_remaining=allowance.remaining,
    )
