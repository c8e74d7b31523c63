"""Enrollment service layer.

Business logic for:
- Enrollment with a single ACTIVE enrollment per (user, path)
- Drop, single and bulk (bulk is the single-item drop applied per id)
- Path progress recompute and the one-way COMPLETED transition
- Progress summary
"""

import asyncio
from datetime import timedelta
from uuid import UUID, uuid4

import structlog

from src.catalog.repository import CatalogRepository
from src.core.exceptions import (
    AlreadyEnrolledError,
    InvalidEnrollmentStateError,
    LearningHubError,
    NotFoundError,
    PathNotPublishedError,
)
from src.progress.models import CompletionEvent, ModuleProgressStatus
from src.progress.prerequisites import PrerequisiteResolver
from src.progress.repository import ModuleProgressRepository
from src.utils.dates import utc_now
from src.utils.numbers import percent_half_up

from .models import ActiveSlot, Enrollment, EnrollmentStatus
from .repository import EnrollmentRepository
from .schemas import DropOutcome, ModuleProgressSummary, ProgressSummaryResponse


logger = structlog.get_logger(__name__)

# progress_percent stays below 100 until every module is completed
MAX_INCOMPLETE_PERCENT = 99


def new_certificate_id() -> str:
    """Opaque, unique certificate token."""
    return f"CERT-{uuid4().hex.upper()}"


class EnrollmentManager:
    """Owns the enrollment state machine and path-level progress."""

    def __init__(
        self,
        catalog: CatalogRepository,
        enrollments: EnrollmentRepository,
        progress: ModuleProgressRepository,
        resolver: PrerequisiteResolver | None = None,
        slot_stale_after: float = 60.0,
    ):
        self.catalog = catalog
        self.enrollments = enrollments
        self.progress = progress
        self.resolver = resolver or PrerequisiteResolver()
        self.slot_stale_after = timedelta(seconds=slot_stale_after)

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment", enrollment_id)
        return enrollment

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        return await self.enrollments.list_for_user(user_id)

    # ==========================================================================
    # Enroll
    # ==========================================================================

    async def enroll(self, user_id: UUID, path_id: UUID) -> Enrollment:
        """Create a new ACTIVE enrollment.

        Args:
            user_id: Learner UUID
            path_id: Learning path UUID

        Returns:
            Enrollment with progress_percent 0

        Raises:
            NotFoundError: Path does not exist
            PathNotPublishedError: Path is not published
            AlreadyEnrolledError: An ACTIVE enrollment exists (carries its id)
        """
        path = await self.catalog.get_path(path_id)
        if path is None:
            raise NotFoundError("path", path_id)
        if not path.is_published:
            raise PathNotPublishedError(path_id)

        slot = await self.enrollments.get_active_slot(user_id, path_id)
        if slot is not None:
            await self._raise_if_still_active(user_id, path_id, slot)

        now = utc_now()
        enrollment = Enrollment(
            id=uuid4(),
            user_id=user_id,
            path_id=path_id,
            status=EnrollmentStatus.ACTIVE.value,
            progress_percent=0,
            started_at=now,
            updated_at=now,
        )
        await asyncio.shield(self._create(enrollment))

        logger.info(
            "user_enrolled",
            enrollment_id=str(enrollment.id),
            user_id=str(user_id),
            path_id=str(path_id),
        )
        return enrollment

    async def _raise_if_still_active(
        self, user_id: UUID, path_id: UUID, slot: ActiveSlot
    ) -> None:
        """Raise AlreadyEnrolled unless the slot is provably abandoned.

        A holder that reached a terminal state left its slot behind. A slot
        with no enrollment row yet belongs to an enroll still in flight,
        unless the claim is older than ``slot_stale_after``.
        """
        holder_id = slot.enrollment_id
        holder = await self.enrollments.get(holder_id)
        if holder is None:
            claimed_at = slot.claimed_at
            if claimed_at is None or utc_now() - claimed_at < self.slot_stale_after:
                raise AlreadyEnrolledError(holder_id)
            logger.warning(
                "enrollment_orphaned_slot_released",
                user_id=str(user_id),
                path_id=str(path_id),
                enrollment_id=str(holder_id),
            )
        elif holder.is_active:
            raise AlreadyEnrolledError(holder_id)
        await self.enrollments.release_active_slot(user_id, path_id, holder_id)

    async def _create(self, enrollment: Enrollment) -> None:
        holder_id = await self.enrollments.claim_active_slot(
            enrollment.user_id, enrollment.path_id, enrollment.id, enrollment.started_at
        )
        if holder_id is not None:
            raise AlreadyEnrolledError(holder_id)
        try:
            await self.enrollments.insert(enrollment)
        except Exception:
            await self.enrollments.release_active_slot(
                enrollment.user_id, enrollment.path_id, enrollment.id
            )
            raise

    # ==========================================================================
    # Drop
    # ==========================================================================

    async def drop(self, enrollment_id: UUID) -> Enrollment:
        """ACTIVE -> DROPPED. Points already credited are kept.

        Raises:
            NotFoundError: Enrollment does not exist
            InvalidEnrollmentStateError: Enrollment is not ACTIVE
        """
        enrollment = await self.get_enrollment(enrollment_id)
        if not enrollment.is_active:
            raise InvalidEnrollmentStateError(enrollment.id, enrollment.status)

        now = utc_now()
        if not await self.enrollments.mark_dropped(enrollment.id, now):
            current = await self.get_enrollment(enrollment_id)
            raise InvalidEnrollmentStateError(current.id, current.status)

        await self.enrollments.release_active_slot(
            enrollment.user_id, enrollment.path_id, enrollment.id
        )
        logger.info(
            "enrollment_dropped",
            enrollment_id=str(enrollment.id),
            user_id=str(enrollment.user_id),
            path_id=str(enrollment.path_id),
        )
        return await self.get_enrollment(enrollment_id)

    async def drop_many(self, enrollment_ids: list[UUID]) -> list[DropOutcome]:
        """Apply ``drop`` to each id and report every outcome."""
        outcomes = []
        for enrollment_id in enrollment_ids:
            try:
                dropped = await self.drop(enrollment_id)
            except LearningHubError as e:
                outcomes.append(
                    DropOutcome(
                        enrollment_id=enrollment_id,
                        success=False,
                        error_code=e.code,
                        error_message=e.message,
                    )
                )
                continue
            outcomes.append(
                DropOutcome(
                    enrollment_id=enrollment_id,
                    success=True,
                    status=EnrollmentStatus(dropped.status),
                )
            )

        logger.info(
            "enrollments_bulk_dropped",
            requested=len(enrollment_ids),
            dropped=sum(1 for o in outcomes if o.success),
        )
        return outcomes

    # ==========================================================================
    # Progress
    # ==========================================================================

    async def handle_completion(self, event: CompletionEvent) -> None:
        """Completion event consumer."""
        await self.recompute_progress(event.enrollment_id)

    async def recompute_progress(self, enrollment_id: UUID) -> Enrollment:
        """Recount completed modules and advance the enrollment.

        progress_percent = completed / total * 100 rounded half-up, held at
        99 until every module is completed. At 100 the enrollment becomes
        COMPLETED with completed_at and a certificate id. Terminal
        enrollments are returned unchanged.
        """
        enrollment = await self.get_enrollment(enrollment_id)
        if not enrollment.is_active:
            return enrollment

        modules = await self.catalog.get_path_modules(enrollment.path_id)
        progress_by_module = await self.progress.list_for_enrollment(enrollment.id)
        completed = sum(
            1
            for module in modules
            if (p := progress_by_module.get(module.id)) is not None and p.is_completed
        )
        total = len(modules)

        now = utc_now()
        if total > 0 and completed == total:
            certificate_id = new_certificate_id()
            if await self.enrollments.mark_completed(enrollment.id, certificate_id, now):
                await self.enrollments.release_active_slot(
                    enrollment.user_id, enrollment.path_id, enrollment.id
                )
                logger.info(
                    "enrollment_completed",
                    enrollment_id=str(enrollment.id),
                    user_id=str(enrollment.user_id),
                    path_id=str(enrollment.path_id),
                    certificate_id=certificate_id,
                )
            return await self.get_enrollment(enrollment_id)

        percent = min(percent_half_up(completed, total), MAX_INCOMPLETE_PERCENT)
        if percent > enrollment.progress_percent:
            await self.enrollments.update_progress(enrollment.id, percent, now)
            logger.info(
                "enrollment_progress_updated",
                enrollment_id=str(enrollment.id),
                progress_percent=percent,
                modules_completed=completed,
                modules_total=total,
            )
            return await self.get_enrollment(enrollment_id)
        return enrollment

    async def get_progress_summary(self, enrollment_id: UUID) -> ProgressSummaryResponse:
        """Modules in path order with status, points and unmet prerequisites."""
        enrollment = await self.get_enrollment(enrollment_id)
        modules = await self.catalog.get_path_modules(enrollment.path_id)
        progress_by_module = await self.progress.list_for_enrollment(enrollment.id)

        items = []
        points_earned = 0
        completed = 0
        for module in modules:
            progress = progress_by_module.get(module.id)
            status = progress.status if progress else ModuleProgressStatus.NOT_STARTED.value
            if progress and progress.is_completed:
                completed += 1
                points_earned += progress.points_earned or 0
            check = self.resolver.check_satisfied(module, progress_by_module)
            items.append(
                ModuleProgressSummary(
                    module_id=module.id,
                    order_index=module.order_index,
                    title=module.title,
                    content_type=module.content_type,
                    status=ModuleProgressStatus(status),
                    completion_points=module.completion_points,
                    points_earned=progress.points_earned if progress else None,
                    best_quiz_score=progress.best_quiz_score if progress else None,
                    completed_at=progress.completed_at if progress else None,
                    quiz_id=module.quiz_id,
                    unmet_prerequisite_ids=check.unmet_module_ids,
                )
            )

        return ProgressSummaryResponse(
            enrollment_id=enrollment.id,
            user_id=enrollment.user_id,
            path_id=enrollment.path_id,
            status=EnrollmentStatus(enrollment.status),
            progress_percent=enrollment.progress_percent,
            modules_completed=completed,
            modules_total=len(modules),
            points_earned=points_earned,
            certificate_id=enrollment.certificate_id,
            completed_at=enrollment.completed_at,
            modules=items,
        )
