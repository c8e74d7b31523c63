"""Quiz grading service layer.

Business logic for:
- Attempt submission with answer validation and attempt limits
- Attempt number assignment serialized per (quiz, enrollment)
- Best passing attempt lookup for module completion gating
- Admin override granting extra attempts
"""

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID, uuid4

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.catalog.models import Quiz
from src.catalog.repository import CatalogRepository
from src.core.exceptions import (
    AttemptsExhaustedError,
    ConcurrencyConflictError,
    InvalidEnrollmentStateError,
    ModuleNotInPathError,
    NotFoundError,
)
from src.enrollments.models import Enrollment
from src.enrollments.repository import EnrollmentRepository
from src.utils.dates import utc_now

from .grading import grade_answers
from .models import QuizAttempt
from .repository import QuizAttemptRepository


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AttemptAllowance:
    """Attempts used versus attempts allowed for one (quiz, enrollment)."""

    used: int
    allowed: int

    @property
    def remaining(self) -> int:
        return max(self.allowed - self.used, 0)


class QuizGrader:
    """Grades quiz attempts and answers whether a quiz has been passed."""

    def __init__(
        self,
        catalog: CatalogRepository,
        attempts: QuizAttemptRepository,
        enrollments: EnrollmentRepository,
        default_max_attempts: int = 3,
        max_retries: int = 5,
        retry_base_delay: float = 0.01,
    ):
        self.catalog = catalog
        self.attempts = attempts
        self.enrollments = enrollments
        self.default_max_attempts = default_max_attempts
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    async def get_quiz(self, quiz_id: UUID) -> Quiz:
        quiz = await self.catalog.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("quiz", quiz_id)
        return quiz

    async def _load(self, quiz_id: UUID, enrollment_id: UUID) -> tuple[Quiz, Enrollment]:
        quiz = await self.get_quiz(quiz_id)
        enrollment = await self.enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment", enrollment_id)
        return quiz, enrollment

    def _max_attempts(self, quiz: Quiz) -> int:
        return quiz.max_attempts if quiz.max_attempts is not None else self.default_max_attempts

    async def get_allowance(self, quiz: Quiz, enrollment_id: UUID) -> AttemptAllowance:
        """Attempts used and allowed, including admin-granted extras."""
        attempts = await self.attempts.list_attempts(quiz.id, enrollment_id)
        extra = await self.attempts.get_extra_attempts(quiz.id, enrollment_id)
        return AttemptAllowance(used=len(attempts), allowed=self._max_attempts(quiz) + extra)

    # ==========================================================================
    # Submission
    # ==========================================================================

    async def submit_attempt(
        self,
        quiz_id: UUID,
        enrollment_id: UUID,
        answers: Sequence[int],
    ) -> QuizAttempt:
        """Grade and persist a new attempt.

        Args:
            quiz_id: Quiz UUID
            enrollment_id: Enrollment submitting the attempt
            answers: Selected option index per question

        Returns:
            The stored, immutable QuizAttempt

        Raises:
            NotFoundError: Quiz or enrollment does not exist
            InvalidEnrollmentStateError: Enrollment is not ACTIVE
            ModuleNotInPathError: Quiz's module is outside the enrolled path
            InvalidAnswersError: Not exactly one answer per question
            AttemptsExhaustedError: No attempts left
            ConcurrencyConflictError: Attempt number could not be claimed
        """
        quiz, enrollment = await self._load(quiz_id, enrollment_id)
        if not enrollment.is_active:
            raise InvalidEnrollmentStateError(enrollment.id, enrollment.status)

        module = await self.catalog.get_module(quiz.module_id)
        if module is None or module.path_id != enrollment.path_id:
            raise ModuleNotInPathError(quiz.module_id, enrollment.path_id)

        grade = grade_answers(quiz, answers)

        async for retry in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=1),
            retry=retry_if_exception_type(ConcurrencyConflictError),
            reraise=True,
        ):
            with retry:
                attempt = await self._claim_next_attempt(quiz, enrollment, answers, grade)

        logger.info(
            "quiz_attempt_submitted",
            quiz_id=str(quiz_id),
            enrollment_id=str(enrollment_id),
            attempt_number=attempt.attempt_number,
            score_percent=attempt.score_percent,
            passed=attempt.passed,
        )
        return attempt

    async def _claim_next_attempt(self, quiz, enrollment, answers, grade) -> QuizAttempt:
        existing = await self.attempts.list_attempts(quiz.id, enrollment.id)
        extra = await self.attempts.get_extra_attempts(quiz.id, enrollment.id)
        allowed = self._max_attempts(quiz) + extra
        if len(existing) >= allowed:
            raise AttemptsExhaustedError(quiz.id, allowed)

        attempt = QuizAttempt(
            id=uuid4(),
            quiz_id=quiz.id,
            enrollment_id=enrollment.id,
            attempt_number=max((a.attempt_number for a in existing), default=0) + 1,
            raw_answers=list(answers),
            score_percent=grade.score_percent,
            passed=grade.passed,
            user_id=enrollment.user_id,
            earned_points=grade.earned_points,
            total_points=grade.total_points,
            question_results=list(grade.question_results),
            submitted_at=utc_now(),
        )
        if not await self.attempts.insert_if_absent(attempt):
            logger.debug(
                "quiz_attempt_number_taken",
                quiz_id=str(quiz.id),
                enrollment_id=str(enrollment.id),
                attempt_number=attempt.attempt_number,
            )
            raise ConcurrencyConflictError("quiz_attempt", f"{quiz.id}:{enrollment.id}")
        return attempt

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def best_passing_attempt(
        self, quiz_id: UUID, enrollment_id: UUID
    ) -> QuizAttempt | None:
        """Highest-scoring passed attempt, the earliest one on ties."""
        attempts = await self.attempts.list_attempts(quiz_id, enrollment_id)
        passed = [a for a in attempts if a.passed]
        if not passed:
            return None
        return min(passed, key=lambda a: (-a.score_percent, a.attempt_number))

    async def list_attempts(self, quiz_id: UUID, enrollment_id: UUID) -> list[QuizAttempt]:
        quiz, _ = await self._load(quiz_id, enrollment_id)
        return await self.attempts.list_attempts(quiz.id, enrollment_id)

    # ==========================================================================
    # Admin override
    # ==========================================================================

    async def grant_extra_attempts(
        self,
        quiz_id: UUID,
        enrollment_id: UUID,
        count: int,
        granted_by: UUID | None = None,
    ) -> AttemptAllowance:
        """Allow ``count`` more attempts beyond the quiz limit."""
        quiz, _ = await self._load(quiz_id, enrollment_id)
        await self.attempts.add_extra_attempts(quiz.id, enrollment_id, count)

        logger.info(
            "quiz_attempts_granted",
            quiz_id=str(quiz_id),
            enrollment_id=str(enrollment_id),
            count=count,
            granted_by=str(granted_by) if granted_by else None,
        )
        return await self.get_allowance(quiz, enrollment_id)
