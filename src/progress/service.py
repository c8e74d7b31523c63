"""Module progress service layer.

Business logic for:
- Starting a module (idempotent)
- Completing a module behind prerequisite and quiz gates
- Recording quiz results on the module's progress row

Completion runs validation first (read-only, safe to retry) and then the
side effects: the conditional COMPLETED write, the completion event and the
path progress recompute. The side effects are shielded from request
cancellation so an aborted client never leaves a half-applied completion.
"""

import asyncio
from uuid import UUID

import structlog

from src.catalog.models import Module, Quiz
from src.catalog.repository import CatalogRepository
from src.core.exceptions import (
    InvalidEnrollmentStateError,
    ModuleNotInPathError,
    NotFoundError,
    PrerequisiteNotMetError,
    QuizNotPassedError,
)
from src.enrollments.models import Enrollment
from src.enrollments.repository import EnrollmentRepository
from src.enrollments.service import EnrollmentManager
from src.events.bus import CompletionEventBus
from src.quizzes.models import QuizAttempt
from src.quizzes.service import QuizGrader
from src.utils.dates import utc_now

from .models import CompletionEvent, ModuleProgress, ModuleProgressStatus
from .prerequisites import PrerequisiteResolver
from .repository import ModuleProgressRepository


logger = structlog.get_logger(__name__)

# Bounded loop for compare-and-set of the best quiz score
_MAX_SCORE_CAS_ROUNDS = 5


class ModuleProgressTracker:
    """Owns the per-module state machine of an enrollment."""

    def __init__(
        self,
        catalog: CatalogRepository,
        progress: ModuleProgressRepository,
        enrollments: EnrollmentRepository,
        grader: QuizGrader,
        event_bus: CompletionEventBus,
        resolver: PrerequisiteResolver | None = None,
        enrollment_manager: EnrollmentManager | None = None,
    ):
        self.catalog = catalog
        self.progress = progress
        self.enrollments = enrollments
        self.grader = grader
        self.event_bus = event_bus
        self.resolver = resolver or PrerequisiteResolver()
        self.enrollment_manager = enrollment_manager

    async def _load(self, enrollment_id: UUID, module_id: UUID) -> tuple[Enrollment, Module]:
        enrollment = await self.enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment", enrollment_id)
        module = await self.catalog.get_module(module_id)
        if module is None:
            raise NotFoundError("module", module_id)
        if module.path_id != enrollment.path_id:
            raise ModuleNotInPathError(module_id, enrollment.path_id)
        return enrollment, module

    @staticmethod
    def _not_started(enrollment: Enrollment, module_id: UUID) -> ModuleProgress:
        return ModuleProgress(
            enrollment_id=enrollment.id,
            module_id=module_id,
            user_id=enrollment.user_id,
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_module_progress(self, enrollment_id: UUID, module_id: UUID) -> ModuleProgress:
        """Progress of one module; NOT_STARTED when no row exists yet."""
        enrollment, module = await self._load(enrollment_id, module_id)
        current = await self.progress.get(enrollment.id, module.id)
        return current or self._not_started(enrollment, module.id)

    # ==========================================================================
    # Start
    # ==========================================================================

    async def start_module(self, enrollment_id: UUID, module_id: UUID) -> ModuleProgress:
        """NOT_STARTED -> IN_PROGRESS; no-op when already started or completed.

        Raises:
            NotFoundError: Enrollment or module does not exist
            ModuleNotInPathError: Module is outside the enrolled path
            InvalidEnrollmentStateError: Enrollment is not ACTIVE
        """
        enrollment, module = await self._load(enrollment_id, module_id)
        current = await self.progress.get(enrollment.id, module.id)
        if current and current.is_started:
            return current

        if not enrollment.is_active:
            raise InvalidEnrollmentStateError(enrollment.id, enrollment.status)

        now = utc_now()
        if current is None:
            started = ModuleProgress(
                enrollment_id=enrollment.id,
                module_id=module.id,
                user_id=enrollment.user_id,
                status=ModuleProgressStatus.IN_PROGRESS.value,
                started_at=now,
                updated_at=now,
            )
            if await self.progress.create_if_absent(started):
                logger.info(
                    "module_started",
                    enrollment_id=str(enrollment.id),
                    module_id=str(module.id),
                )
                return started
        else:
            await self.progress.mark_started(enrollment.id, module.id, now)

        # Lost a race or moved from a NOT_STARTED row: return what is stored
        return await self.progress.get(enrollment.id, module.id)

    # ==========================================================================
    # Complete
    # ==========================================================================

    async def complete_module(self, enrollment_id: UUID, module_id: UUID) -> ModuleProgress:
        """Mark a module COMPLETED once every gate is satisfied.

        Args:
            enrollment_id: Enrollment UUID
            module_id: Module UUID

        Returns:
            The completed ModuleProgress (unchanged if it was completed already)

        Raises:
            NotFoundError: Enrollment or module does not exist
            ModuleNotInPathError: Module is outside the enrolled path
            InvalidEnrollmentStateError: Enrollment is not ACTIVE
            PrerequisiteNotMetError: Some prerequisite is not completed
            QuizNotPassedError: The gating quiz has no passing attempt
        """
        enrollment, module = await self._load(enrollment_id, module_id)
        progress_by_module = await self.progress.list_for_enrollment(enrollment.id)

        current = progress_by_module.get(module.id)
        if current and current.is_completed:
            if enrollment.is_active and self.enrollment_manager is not None:
                # Path roll-up may have been lost after the first completion
                await self.enrollment_manager.recompute_progress(enrollment.id)
            return current

        if not enrollment.is_active:
            raise InvalidEnrollmentStateError(enrollment.id, enrollment.status)

        check = self.resolver.check_satisfied(module, progress_by_module)
        if not check.satisfied:
            logger.info(
                "module_prerequisites_unmet",
                enrollment_id=str(enrollment.id),
                module_id=str(module.id),
                unmet=[str(m) for m in check.unmet_module_ids],
            )
            raise PrerequisiteNotMetError(module.id, check.unmet_module_ids)

        if module.is_quiz_gated:
            await self._require_passed_quiz(module, enrollment)

        return await asyncio.shield(self._commit_completion(enrollment, module, current))

    async def _require_passed_quiz(self, module: Module, enrollment: Enrollment) -> None:
        best = await self.grader.best_passing_attempt(module.quiz_id, enrollment.id)
        if best is not None:
            return

        quiz = await self.catalog.get_quiz(module.quiz_id)
        if quiz is None:
            raise NotFoundError("quiz", module.quiz_id)
        allowance = await self.grader.get_allowance(quiz, enrollment.id)
        raise QuizNotPassedError(quiz.id, allowance.used, allowance.remaining)

    async def _commit_completion(
        self,
        enrollment: Enrollment,
        module: Module,
        current: ModuleProgress | None,
    ) -> ModuleProgress:
        now = utc_now()
        completed = ModuleProgress(
            enrollment_id=enrollment.id,
            module_id=module.id,
            user_id=enrollment.user_id,
            status=ModuleProgressStatus.COMPLETED.value,
            points_earned=module.completion_points,
            best_quiz_score=current.best_quiz_score if current else None,
            started_at=(current.started_at if current else None) or now,
            completed_at=now,
            updated_at=now,
        )

        if current is None:
            applied = await self.progress.create_if_absent(completed)
            if not applied:
                # Row appeared concurrently (started or completed)
                applied = await self.progress.mark_completed(
                    enrollment.id, module.id, module.completion_points, now
                )
        else:
            applied = await self.progress.mark_completed(
                enrollment.id, module.id, module.completion_points, now
            )

        if not applied:
            # A concurrent request completed it first; its event is already out
            stored = await self.progress.get(enrollment.id, module.id)
            logger.info(
                "module_completion_duplicate",
                enrollment_id=str(enrollment.id),
                module_id=str(module.id),
            )
            return stored

        logger.info(
            "module_completed",
            enrollment_id=str(enrollment.id),
            module_id=str(module.id),
            user_id=str(enrollment.user_id),
            points=module.completion_points,
        )

        await self.event_bus.publish(
            CompletionEvent(
                enrollment_id=enrollment.id,
                module_id=module.id,
                user_id=enrollment.user_id,
                path_id=enrollment.path_id,
                points=module.completion_points,
                occurred_at=now,
            )
        )

        if current is not None:
            return await self.progress.get(enrollment.id, module.id) or completed
        return completed

    # ==========================================================================
    # Quiz results
    # ==========================================================================

    async def record_quiz_result(self, attempt: QuizAttempt, quiz: Quiz) -> ModuleProgress:
        """Keep the module's best quiz score and mark it started.

        Args:
            attempt: Freshly stored attempt
            quiz: Quiz the attempt belongs to

        Returns:
            The module's progress after the update
        """
        enrollment = await self.enrollments.get(attempt.enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment", attempt.enrollment_id)
        module_id = quiz.module_id
        now = utc_now()

        for _ in range(_MAX_SCORE_CAS_ROUNDS):
            current = await self.progress.get(enrollment.id, module_id)
            if current is None:
                created = ModuleProgress(
                    enrollment_id=enrollment.id,
                    module_id=module_id,
                    user_id=enrollment.user_id,
                    status=ModuleProgressStatus.IN_PROGRESS.value,
                    best_quiz_score=attempt.score_percent,
                    started_at=now,
                    updated_at=now,
                )
                if await self.progress.create_if_absent(created):
                    return created
                continue

            if current.status == ModuleProgressStatus.NOT_STARTED.value:
                await self.progress.mark_started(enrollment.id, module_id, now)

            best = current.best_quiz_score
            if best is not None and best >= attempt.score_percent:
                return await self.progress.get(enrollment.id, module_id) or current
            if await self.progress.set_best_quiz_score(
                enrollment.id, module_id, attempt.score_percent, best, now
            ):
                return await self.progress.get(enrollment.id, module_id) or current

        logger.warning(
            "best_quiz_score_contended",
            enrollment_id=str(enrollment.id),
            module_id=str(module_id),
        )
        return await self.progress.get(enrollment.id, module_id)
