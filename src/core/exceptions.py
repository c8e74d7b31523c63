"""Domain errors for the progress and gamification engine.

Every error carries a stable ``code`` used by the HTTP layer and by clients
to pick a message, plus ``details()`` with the ids a UI needs to guide the
learner (unmet prerequisites, attempts left, the existing enrollment...).
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID


class LearningHubError(Exception):
    """Base error for the engine."""

    def __init__(self, message: str, code: str = "learning_hub_error"):
        self.message = message
        self.code = code
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        """Structured context for the response body."""
        return {}


class NotFoundError(LearningHubError):
    """Referenced module, path, enrollment or quiz does not exist."""

    def __init__(self, resource: str, resource_id: UUID | str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource.capitalize()} not found", f"{resource}_not_found")

    def details(self) -> dict[str, Any]:
        return {"resource": self.resource, "id": str(self.resource_id)}


class AlreadyEnrolledError(LearningHubError):
    """An ACTIVE enrollment already exists for this user and path."""

    def __init__(self, enrollment_id: UUID | None = None):
        self.enrollment_id = enrollment_id
        super().__init__("User is already enrolled in this path", "already_enrolled")

    def details(self) -> dict[str, Any]:
        if self.enrollment_id is None:
            return {}
        return {"enrollment_id": str(self.enrollment_id)}


class PrerequisiteNotMetError(LearningHubError):
    """One or more prerequisite modules are not completed yet."""

    def __init__(self, module_id: UUID, unmet_module_ids: Iterable[UUID]):
        self.module_id = module_id
        self.unmet_module_ids = sorted(unmet_module_ids, key=str)
        super().__init__("Prerequisite Required", "prerequisite_not_met")

    def details(self) -> dict[str, Any]:
        return {
            "module_id": str(self.module_id),
            "unmet_module_ids": [str(m) for m in self.unmet_module_ids],
        }


class QuizNotPassedError(LearningHubError):
    """The quiz gating a module has no passing attempt."""

    def __init__(self, quiz_id: UUID, attempts_used: int, attempts_remaining: int):
        self.quiz_id = quiz_id
        self.attempts_used = attempts_used
        self.attempts_remaining = attempts_remaining
        super().__init__("Quiz must be passed to complete module", "quiz_not_passed")

    def details(self) -> dict[str, Any]:
        return {
            "quiz_id": str(self.quiz_id),
            "attempts_used": self.attempts_used,
            "attempts_remaining": self.attempts_remaining,
        }


class AttemptsExhaustedError(LearningHubError):
    """No attempts left for this quiz; only an admin override can grant more."""

    def __init__(self, quiz_id: UUID, max_attempts: int):
        self.quiz_id = quiz_id
        self.max_attempts = max_attempts
        super().__init__("Maximum quiz attempts reached", "attempts_exhausted")

    def details(self) -> dict[str, Any]:
        return {"quiz_id": str(self.quiz_id), "max_attempts": self.max_attempts}


class InvalidEnrollmentStateError(LearningHubError):
    """Operation attempted on an enrollment that is no longer ACTIVE."""

    def __init__(self, enrollment_id: UUID, status: str):
        self.enrollment_id = enrollment_id
        self.status = status
        super().__init__(
            f"Enrollment is {status}; operation not allowed", "invalid_enrollment_state"
        )

    def details(self) -> dict[str, Any]:
        return {"enrollment_id": str(self.enrollment_id), "status": self.status}


class CyclicPrerequisiteError(LearningHubError):
    """Prerequisite graph of a path contains a cycle."""

    def __init__(self, cycle: Iterable[UUID]):
        self.cycle = list(cycle)
        super().__init__("Module prerequisites form a cycle", "cyclic_prerequisite")

    def details(self) -> dict[str, Any]:
        return {"cycle": [str(m) for m in self.cycle]}


class InvalidModuleDefinitionError(LearningHubError):
    """Module definition is missing fields its content type requires."""

    def __init__(self, module_id: UUID, reason: str):
        self.module_id = module_id
        self.reason = reason
        super().__init__(reason, "invalid_module_definition")

    def details(self) -> dict[str, Any]:
        return {"module_id": str(self.module_id), "reason": self.reason}


class ModuleNotInPathError(LearningHubError):
    """Module does not belong to the enrollment's learning path."""

    def __init__(self, module_id: UUID, path_id: UUID):
        self.module_id = module_id
        self.path_id = path_id
        super().__init__(
            "Module does not belong to the enrolled learning path", "module_not_in_path"
        )

    def details(self) -> dict[str, Any]:
        return {"module_id": str(self.module_id), "path_id": str(self.path_id)}


class InvalidAnswersError(LearningHubError):
    """Submitted answers do not match the quiz's questions."""

    def __init__(
        self, expected: int, received: int, invalid_questions: list[int] | None = None
    ):
        self.expected = expected
        self.received = received
        self.invalid_questions = invalid_questions or []
        if self.invalid_questions:
            message = f"Selected option out of range for questions {self.invalid_questions}"
        else:
            message = f"Expected {expected} answers, received {received}"
        super().__init__(message, "invalid_answers")

    def details(self) -> dict[str, Any]:
        details: dict[str, Any] = {"expected": self.expected, "received": self.received}
        if self.invalid_questions:
            details["invalid_questions"] = self.invalid_questions
        return details


class PathNotPublishedError(LearningHubError):
    """Enrollment requested on a path that is not published."""

    def __init__(self, path_id: UUID):
        self.path_id = path_id
        super().__init__(
            "Cannot enroll in a learning path that is not published",
            "path_not_published",
        )

    def details(self) -> dict[str, Any]:
        return {"path_id": str(self.path_id)}


class ConcurrencyConflictError(LearningHubError):
    """Optimistic-lock check failed; the caller may retry."""

    def __init__(self, resource: str, key: UUID | str):
        self.resource = resource
        self.key = key
        super().__init__(
            "Concurrent update detected, please retry", "concurrency_conflict"
        )

    def details(self) -> dict[str, Any]:
        return {"resource": self.resource, "key": str(self.key)}


class LeaderboardWindowOpenError(LearningHubError):
    """Only windows that have already ended can be closed."""

    def __init__(self, period: str, window_start: datetime):
        self.period = period
        self.window_start = window_start
        super().__init__(
            "Leaderboard window has not ended yet", "leaderboard_window_open"
        )

    def details(self) -> dict[str, Any]:
        return {"period": self.period, "window_start": self.window_start.isoformat()}
