"""Tests for EnrollmentManager: enrollment, drop and path progress."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from src.catalog.models import Module, PathStatus
from src.core.exceptions import (
    AlreadyEnrolledError,
    InvalidEnrollmentStateError,
    NotFoundError,
    PathNotPublishedError,
)
from src.enrollments.models import Enrollment, EnrollmentStatus
from src.enrollments.service import EnrollmentManager, new_certificate_id
from src.progress.models import ModuleProgress, ModuleProgressStatus
from src.utils.dates import utc_now
from tests.fakes import FakeEnrollmentRepository


class GatedEnrollmentRepository(FakeEnrollmentRepository):
    """Holds ``insert`` until the test releases it."""

    def __init__(self):
        super().__init__()
        self.insert_started = asyncio.Event()
        self.release_insert = asyncio.Event()

    async def insert(self, enrollment: Enrollment) -> None:
        self.insert_started.set()
        await self.release_insert.wait()
        await super().insert(enrollment)


class FailingInsertEnrollmentRepository(FakeEnrollmentRepository):
    async def insert(self, enrollment: Enrollment) -> None:
        raise ConnectionError("cassandra unavailable")


def completed_row(enrollment: Enrollment, module_id) -> ModuleProgress:
    return ModuleProgress(
        enrollment_id=enrollment.id,
        module_id=module_id,
        user_id=enrollment.user_id,
        status=ModuleProgressStatus.COMPLETED.value,
        points_earned=0,
    )


class TestEnroll:
    @pytest.mark.asyncio
    async def test_enroll_creates_active_enrollment(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)

        assert enrollment.status == EnrollmentStatus.ACTIVE.value
        assert enrollment.progress_percent == 0
        assert enrollment.certificate_id is None
        assert engine.enrollments.active_slots[(user_id, learning_path.path_id)] == enrollment.id

    @pytest.mark.asyncio
    async def test_second_enroll_reports_existing(self, engine, learning_path, user_id):
        first = await engine.manager.enroll(user_id, learning_path.path_id)

        with pytest.raises(AlreadyEnrolledError) as exc_info:
            await engine.manager.enroll(user_id, learning_path.path_id)

        assert exc_info.value.enrollment_id == first.id
        assert exc_info.value.details() == {"enrollment_id": str(first.id)}

    @pytest.mark.asyncio
    async def test_unpublished_path(self, engine, user_id):
        path_id = uuid4()
        engine.catalog.add_path(path_id, status=PathStatus.DRAFT.value)

        with pytest.raises(PathNotPublishedError):
            await engine.manager.enroll(user_id, path_id)

    @pytest.mark.asyncio
    async def test_unknown_path(self, engine, user_id):
        with pytest.raises(NotFoundError) as exc_info:
            await engine.manager.enroll(user_id, uuid4())
        assert exc_info.value.code == "path_not_found"

    @pytest.mark.asyncio
    async def test_stale_slot_released(self, engine, learning_path, user_id):
        first = await engine.manager.enroll(user_id, learning_path.path_id)
        # Terminal transition written but the slot release was lost
        await engine.enrollments.mark_dropped(first.id, first.started_at)

        second = await engine.manager.enroll(user_id, learning_path.path_id)

        assert second.id != first.id
        assert engine.enrollments.active_slots[(user_id, learning_path.path_id)] == second.id

    @pytest.mark.asyncio
    async def test_concurrent_enroll_keeps_single_active(self, engine, learning_path, user_id):
        repository = GatedEnrollmentRepository()
        manager = EnrollmentManager(engine.catalog, repository, engine.progress)

        first = asyncio.create_task(manager.enroll(user_id, learning_path.path_id))
        await repository.insert_started.wait()

        # First request holds the slot but has not written its row yet
        with pytest.raises(AlreadyEnrolledError):
            await manager.enroll(user_id, learning_path.path_id)

        repository.release_insert.set()
        enrollment = await first

        active = [e.id for e in repository.rows.values() if e.is_active]
        assert active == [enrollment.id]
        assert repository.active_slots[(user_id, learning_path.path_id)] == enrollment.id

    @pytest.mark.asyncio
    async def test_orphaned_slot_reclaimed_after_timeout(self, engine, learning_path, user_id):
        slot = (user_id, learning_path.path_id)
        engine.enrollments.active_slots[slot] = uuid4()
        engine.enrollments.slot_claimed_at[slot] = utc_now() - timedelta(minutes=5)

        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)

        assert engine.enrollments.active_slots[slot] == enrollment.id

    @pytest.mark.asyncio
    async def test_failed_insert_releases_slot(self, engine, learning_path, user_id):
        repository = FailingInsertEnrollmentRepository()
        manager = EnrollmentManager(engine.catalog, repository, engine.progress)

        with pytest.raises(ConnectionError):
            await manager.enroll(user_id, learning_path.path_id)

        assert (user_id, learning_path.path_id) not in repository.active_slots

    @pytest.mark.asyncio
    async def test_list_user_enrollments(self, engine, learning_path, user_id):
        first = await engine.manager.enroll(user_id, learning_path.path_id)
        await engine.manager.drop(first.id)
        second = await engine.manager.enroll(user_id, learning_path.path_id)

        enrollments = await engine.manager.list_user_enrollments(user_id)

        assert {e.id for e in enrollments} == {first.id, second.id}


class TestDrop:
    @pytest.mark.asyncio
    async def test_drop_active(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)

        dropped = await engine.manager.drop(enrollment.id)

        assert dropped.status == EnrollmentStatus.DROPPED.value
        assert dropped.dropped_at is not None
        assert (user_id, learning_path.path_id) not in engine.enrollments.active_slots

    @pytest.mark.asyncio
    async def test_drop_keeps_points(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)

        await engine.manager.drop(enrollment.id)

        assert (await engine.ledger.get_state(user_id)).total_points == 50

    @pytest.mark.asyncio
    async def test_drop_twice_rejected(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        await engine.manager.drop(enrollment.id)

        with pytest.raises(InvalidEnrollmentStateError):
            await engine.manager.drop(enrollment.id)

    @pytest.mark.asyncio
    async def test_drop_many_reports_each_outcome(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        missing = uuid4()

        outcomes = await engine.manager.drop_many([enrollment.id, missing, enrollment.id])

        assert [o.success for o in outcomes] == [True, False, False]
        assert outcomes[0].status == EnrollmentStatus.DROPPED
        assert outcomes[1].error_code == "enrollment_not_found"
        assert outcomes[2].error_code == "invalid_enrollment_state"


class TestRecomputeProgress:
    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)
        engine.catalog.add_module(
            Module(id=uuid4(), path_id=learning_path.path_id, order_index=4, body="x")
        )

        updated = await engine.manager.recompute_progress(enrollment.id)

        # 1 of 4 would be 25
        assert updated.progress_percent == 33

    @pytest.mark.asyncio
    async def test_capped_below_100_until_all_complete(self, engine, user_id):
        path_id = uuid4()
        engine.catalog.add_path(path_id)
        modules = [
            engine.catalog.add_module(Module(id=uuid4(), path_id=path_id, order_index=i, body="x"))
            for i in range(200)
        ]
        enrollment = await engine.manager.enroll(user_id, path_id)
        for module in modules[:199]:
            row = completed_row(enrollment, module.id)
            engine.progress.rows[(enrollment.id, module.id)] = row

        updated = await engine.manager.recompute_progress(enrollment.id)

        # 199/200 rounds half-up to 100
        assert updated.progress_percent == 99
        assert updated.status == EnrollmentStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_completion_sets_certificate_once(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        for module in (learning_path.m1, learning_path.m2, learning_path.m3):
            engine.progress.rows[(enrollment.id, module.id)] = completed_row(enrollment, module.id)

        completed = await engine.manager.recompute_progress(enrollment.id)
        again = await engine.manager.recompute_progress(enrollment.id)

        assert completed.status == EnrollmentStatus.COMPLETED.value
        assert completed.progress_percent == 100
        assert again.certificate_id == completed.certificate_id
        assert (user_id, learning_path.path_id) not in engine.enrollments.active_slots

    @pytest.mark.asyncio
    async def test_dropped_enrollment_untouched(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        engine.progress.rows[(enrollment.id, learning_path.m1.id)] = completed_row(
            enrollment, learning_path.m1.id
        )
        await engine.manager.drop(enrollment.id)

        result = await engine.manager.recompute_progress(enrollment.id)

        assert result.status == EnrollmentStatus.DROPPED.value
        assert result.progress_percent == 0

    def test_certificate_ids_are_unique(self):
        assert new_certificate_id() != new_certificate_id()
        assert new_certificate_id().startswith("CERT-")


class TestProgressSummary:
    @pytest.mark.asyncio
    async def test_summary_lists_modules_in_order(self, engine, learning_path, user_id):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)

        summary = await engine.manager.get_progress_summary(enrollment.id)

        assert [m.module_id for m in summary.modules] == [
            learning_path.m1.id,
            learning_path.m2.id,
            learning_path.m3.id,
        ]
        assert summary.modules_completed == 1
        assert summary.modules_total == 3
        assert summary.points_earned == 50
        assert summary.progress_percent == 33
        assert summary.modules[0].status == ModuleProgressStatus.COMPLETED
        assert summary.modules[1].unmet_prerequisite_ids == []
        assert summary.modules[2].unmet_prerequisite_ids == [learning_path.m2.id]
        assert summary.modules[2].quiz_id == learning_path.quiz.id
