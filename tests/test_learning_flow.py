"""End-to-end flow over one learning path.

Path: M1 (50 pts) -> M2 (50 pts) -> M3 (quiz-gated, passing 70, 100 pts).
"""

import pytest

from src.core.exceptions import PrerequisiteNotMetError, QuizNotPassedError
from src.enrollments.models import EnrollmentStatus
from src.leaderboard.models import LeaderboardPeriod
from src.progress.models import ModuleProgressStatus
from tests.conftest import answers_scoring


class TestLearningPathFlow:
    @pytest.mark.asyncio
    async def test_full_path_completion(self, engine, learning_path, user_id):
        lp = learning_path

        enrollment = await engine.manager.enroll(user_id, lp.path_id)
        assert enrollment.status == EnrollmentStatus.ACTIVE.value
        assert enrollment.progress_percent == 0

        # Out of order
        with pytest.raises(PrerequisiteNotMetError) as exc_info:
            await engine.tracker.complete_module(enrollment.id, lp.m2.id)
        assert exc_info.value.unmet_module_ids == [lp.m1.id]

        # M1
        progress = await engine.tracker.complete_module(enrollment.id, lp.m1.id)
        assert progress.status == ModuleProgressStatus.COMPLETED.value
        assert progress.points_earned == 50
        assert (await engine.manager.get_enrollment(enrollment.id)).progress_percent == 33
        assert (await engine.ledger.get_state(user_id)).total_points == 50

        # M2
        await engine.tracker.complete_module(enrollment.id, lp.m2.id)
        assert (await engine.manager.get_enrollment(enrollment.id)).progress_percent == 67
        assert (await engine.ledger.get_state(user_id)).total_points == 100

        # Failing attempt
        first = await engine.grader.submit_attempt(lp.quiz.id, enrollment.id, answers_scoring(3))
        await engine.tracker.record_quiz_result(first, lp.quiz)
        assert first.attempt_number == 1
        assert first.score_percent == 60
        assert first.passed is False

        with pytest.raises(QuizNotPassedError) as exc_info:
            await engine.tracker.complete_module(enrollment.id, lp.m3.id)
        assert exc_info.value.attempts_used == 1
        assert exc_info.value.attempts_remaining == 2

        # Passing attempt
        second = await engine.grader.submit_attempt(lp.quiz.id, enrollment.id, answers_scoring(4))
        await engine.tracker.record_quiz_result(second, lp.quiz)
        assert second.attempt_number == 2
        assert second.score_percent == 80
        assert second.passed is True

        progress = await engine.tracker.complete_module(enrollment.id, lp.m3.id)
        assert progress.is_completed
        assert progress.best_quiz_score == 80

        completed = await engine.manager.get_enrollment(enrollment.id)
        assert completed.status == EnrollmentStatus.COMPLETED.value
        assert completed.progress_percent == 100
        assert completed.certificate_id.startswith("CERT-")
        assert completed.completed_at is not None

        state = await engine.ledger.get_state(user_id)
        assert state.total_points == 200
        assert state.current_level == 3  # 100 points per level in the fixture
        assert state.current_streak_days == 1
        assert len(await engine.ledger.list_transactions(user_id)) == 3

        await engine.aggregator.drain()
        board = await engine.aggregator.get_leaderboard(LeaderboardPeriod.WEEKLY)
        assert [(e.user_id, e.points, e.rank) for e in board.entries] == [(user_id, 200, 1)]
        sales = await engine.aggregator.get_leaderboard(LeaderboardPeriod.MONTHLY, "sales")
        assert sales.entries[0].points == 200

    @pytest.mark.asyncio
    async def test_re_enroll_after_completion(self, engine, learning_path, user_id):
        lp = learning_path
        enrollment = await engine.manager.enroll(user_id, lp.path_id)
        await engine.tracker.complete_module(enrollment.id, lp.m1.id)
        await engine.tracker.complete_module(enrollment.id, lp.m2.id)
        attempt = await engine.grader.submit_attempt(lp.quiz.id, enrollment.id, answers_scoring(5))
        await engine.tracker.record_quiz_result(attempt, lp.quiz)
        await engine.tracker.complete_module(enrollment.id, lp.m3.id)

        again = await engine.manager.enroll(user_id, lp.path_id)

        assert again.id != enrollment.id
        assert again.progress_percent == 0
        # Points for the new enrollment's modules are a new credit
        await engine.tracker.complete_module(again.id, lp.m1.id)
        assert (await engine.ledger.get_state(user_id)).total_points == 250

    @pytest.mark.asyncio
    async def test_failed_history_write_recovered_by_redelivery(
        self, engine, learning_path, user_id
    ):
        enrollment = await engine.manager.enroll(user_id, learning_path.path_id)
        engine.gamification.transaction_failures = 1

        await engine.tracker.complete_module(enrollment.id, learning_path.m1.id)
        await engine.bus.drain()
        await engine.aggregator.drain()

        assert (await engine.ledger.get_state(user_id)).total_points == 50
        assert len(await engine.ledger.list_transactions(user_id)) == 1
        board = await engine.aggregator.get_leaderboard(LeaderboardPeriod.WEEKLY)
        assert [e.points for e in board.entries] == [50]
