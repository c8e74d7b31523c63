"""Conversion of domain errors into HTTP exceptions."""

from fastapi import HTTPException, status

from src.core.exceptions import LearningHubError


_STATUS_BY_CODE: dict[str, int] = {
    "already_enrolled": status.HTTP_409_CONFLICT,
    "prerequisite_not_met": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "quiz_not_passed": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_answers": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "attempts_exhausted": status.HTTP_429_TOO_MANY_REQUESTS,
    "invalid_enrollment_state": status.HTTP_400_BAD_REQUEST,
    "cyclic_prerequisite": status.HTTP_400_BAD_REQUEST,
    "invalid_module_definition": status.HTTP_400_BAD_REQUEST,
    "module_not_in_path": status.HTTP_400_BAD_REQUEST,
    "path_not_published": status.HTTP_400_BAD_REQUEST,
    "leaderboard_window_open": status.HTTP_400_BAD_REQUEST,
    "concurrency_conflict": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(error: LearningHubError) -> int:
    """HTTP status code for a domain error."""
    if error.code.endswith("_not_found"):
        return status.HTTP_404_NOT_FOUND
    return _STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def handle_learning_error(error: LearningHubError) -> HTTPException:
    """Convert a domain error to an HTTPException with a structured detail.

    Args:
        error: Domain error raised by a service

    Returns:
        HTTPException whose detail carries code, message and context ids
    """
    return HTTPException(
        status_code=status_for(error),
        detail={
            "code": error.code,
            "message": error.message,
            "details": error.details(),
        },
    )
