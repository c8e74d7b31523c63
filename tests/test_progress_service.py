"""Tests for ModuleProgressTracker: start, gated completion, quiz results."""

import asyncio
from uuid import uuid4

import pytest
import pytest_asyncio

from src.catalog.models import Module
from src.core.exceptions import (
    InvalidEnrollmentStateError,
    ModuleNotInPathError,
    NotFoundError,
    QuizNotPassedError,
)
from src.enrollments.models import EnrollmentStatus
from src.progress.models import ModuleProgressStatus
from src.progress.service import ModuleProgressTracker
from tests.conftest import answers_scoring
from tests.fakes import RecordingBus


@pytest_asyncio.fixture
async def enrollment(engine, learning_path, user_id):
    return await engine.manager.enroll(user_id, learning_path.path_id)


class TestStartModule:
    @pytest.mark.asyncio
    async def test_untouched_module_reads_not_started(self, engine, learning_path, enrollment):
        progress = await engine.tracker.get_module_progress(enrollment.id, learning_path.m1.id)

        assert progress.status == ModuleProgressStatus.NOT_STARTED.value
        assert progress.started_at is None

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine, learning_path, enrollment):
        first = await engine.tracker.start_module(enrollment.id, learning_path.m1.id)
        second = await engine.tracker.start_module(enrollment.id, learning_path.m1.id)

        assert first.status == ModuleProgressStatus.IN_PROGRESS.value
        assert second.status == ModuleProgressStatus.IN_PROGRESS.value
        assert second.started_at == first.started_at

    @pytest.mark.asyncio
    async def test_start_after_completion_keeps_completed(self, engine, learning_path, enrollment):
        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)

        progress = await engine.tracker.start_module(enrollment.id, learning_path.m1.id)

        assert progress.status == ModuleProgressStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_start_on_dropped_enrollment_rejected(self, engine, learning_path, enrollment):
        await engine.manager.drop(enrollment.id)

        with pytest.raises(InvalidEnrollmentStateError):
            await engine.tracker.start_module(enrollment.id, learning_path.m1.id)


class TestCompleteModule:
    @pytest.mark.asyncio
    async def test_completion_is_idempotent(self, engine, learning_path, enrollment, user_id):
        first = await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)
        second = await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)

        assert second.completed_at == first.completed_at
        assert engine.progress.completion_writes == 1
        assert (await engine.ledger.get_state(user_id)).total_points == 50

    @pytest.mark.asyncio
    async def test_concurrent_completions_credit_once(
        self, engine, learning_path, enrollment, user_id
    ):
        results = await asyncio.gather(
            engine.tracker.complete_module(enrollment.id, learning_path.m1.id),
            engine.tracker.complete_module(enrollment.id, learning_path.m1.id),
        )

        assert all(r.is_completed for r in results)
        assert engine.progress.completion_writes == 1
        state = await engine.ledger.get_state(user_id)
        assert state.total_points == 50
        assert len(await engine.ledger.list_transactions(user_id)) == 1

    @pytest.mark.asyncio
    async def test_completed_module_returned_after_drop(self, engine, learning_path, enrollment):
        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)
        await engine.manager.drop(enrollment.id)

        progress = await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)

        assert progress.is_completed

    @pytest.mark.asyncio
    async def test_dropped_enrollment_rejected(self, engine, learning_path, enrollment):
        await engine.manager.drop(enrollment.id)

        with pytest.raises(InvalidEnrollmentStateError) as exc_info:
            await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)
        assert exc_info.value.status == "dropped"

    @pytest.mark.asyncio
    async def test_module_from_other_path_rejected(self, engine, enrollment):
        foreign = engine.catalog.add_module(
            Module(id=uuid4(), path_id=uuid4(), body="x", completion_points=10)
        )

        with pytest.raises(ModuleNotInPathError):
            await engine.tracker.complete_module(enrollment.id, foreign.id)

    @pytest.mark.asyncio
    async def test_unknown_enrollment(self, engine, learning_path):
        with pytest.raises(NotFoundError) as exc_info:
            await engine.tracker.complete_module(uuid4(), learning_path.m1.id)
        assert exc_info.value.code == "enrollment_not_found"

    @pytest.mark.asyncio
    async def test_unknown_module(self, engine, enrollment):
        with pytest.raises(NotFoundError) as exc_info:
            await engine.tracker.complete_module(enrollment.id, uuid4())
        assert exc_info.value.code == "module_not_found"

    @pytest.mark.asyncio
    async def test_quiz_gate_without_attempts(self, engine, learning_path, enrollment):
        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)
        await engine.tracker.complete_module(enrollment.id, learning_path.m2.id)

        with pytest.raises(QuizNotPassedError) as exc_info:
            await engine.tracker.complete_module(enrollment.id, learning_path.m3.id)

        assert exc_info.value.attempts_used == 0
        assert exc_info.value.attempts_remaining == 3
        assert exc_info.value.details()["quiz_id"] == str(learning_path.quiz.id)

    @pytest.mark.asyncio
    async def test_event_published_once_with_points(self, engine, learning_path, enrollment):
        bus = RecordingBus()
        tracker = ModuleProgressTracker(
            engine.catalog, engine.progress, engine.enrollments, engine.grader, bus
        )

        await tracker.complete_module(enrollment.id, learning_path.m1.id)
        await tracker.complete_module(enrollment.id, learning_path.m1.id)

        assert len(bus.events) == 1
        event = bus.events[0]
        assert event.points == 50
        assert event.path_id == learning_path.path_id
        assert event.idempotency_key == f"{enrollment.id}:{learning_path.m1.id}"

    @pytest.mark.asyncio
    async def test_retry_recomputes_lost_path_progress(self, engine, learning_path, enrollment):
        # Events are recorded but never delivered, so the roll-up is lost
        tracker = ModuleProgressTracker(
            engine.catalog,
            engine.progress,
            engine.enrollments,
            engine.grader,
            RecordingBus(),
            enrollment_manager=engine.manager,
        )
        await tracker.complete_module(enrollment.id, learning_path.m1.id)
        await tracker.complete_module(enrollment.id, learning_path.m2.id)
        await engine.grader.submit_attempt(
            learning_path.quiz.id, enrollment.id, answers_scoring(5)
        )
        await tracker.complete_module(enrollment.id, learning_path.m3.id)
        assert (await engine.manager.get_enrollment(enrollment.id)).is_active

        await tracker.complete_module(enrollment.id, learning_path.m3.id)

        updated = await engine.manager.get_enrollment(enrollment.id)
        assert updated.status == EnrollmentStatus.COMPLETED.value
        assert updated.progress_percent == 100
        assert updated.certificate_id is not None


class TestRecordQuizResult:
    @pytest.mark.asyncio
    async def test_keeps_best_score(self, engine, learning_path, enrollment):
        quiz = learning_path.quiz
        good = await engine.grader.submit_attempt(quiz.id, enrollment.id, answers_scoring(4))
        await engine.tracker.record_quiz_result(good, quiz)
        worse = await engine.grader.submit_attempt(quiz.id, enrollment.id, answers_scoring(2))

        progress = await engine.tracker.record_quiz_result(worse, quiz)

        assert progress.best_quiz_score == 80
        assert progress.status == ModuleProgressStatus.IN_PROGRESS.value

    @pytest.mark.asyncio
    async def test_raises_best_score(self, engine, learning_path, enrollment):
        quiz = learning_path.quiz
        low = await engine.grader.submit_attempt(quiz.id, enrollment.id, answers_scoring(1))
        await engine.tracker.record_quiz_result(low, quiz)
        high = await engine.grader.submit_attempt(quiz.id, enrollment.id, answers_scoring(5))

        progress = await engine.tracker.record_quiz_result(high, quiz)

        assert progress.best_quiz_score == 100
