"""Tests for quiz grading, attempt numbering and attempt limits."""

import asyncio
from uuid import uuid4

import pytest
import pytest_asyncio

from src.catalog.models import Module, Quiz, QuizQuestion
from src.core.exceptions import (
    AttemptsExhaustedError,
    InvalidAnswersError,
    InvalidEnrollmentStateError,
    ModuleNotInPathError,
    NotFoundError,
)
from src.quizzes.grading import grade_answers
from src.utils.numbers import percent_half_up
from tests.conftest import answers_scoring, make_quiz


def weighted_quiz(points: list[int], passing: int = 70) -> Quiz:
    return Quiz(
        id=uuid4(),
        module_id=uuid4(),
        questions=[
            QuizQuestion(text=f"Q{i}", options=("a", "b"), correct_option_index=0, points=p)
            for i, p in enumerate(points)
        ],
        passing_score_percent=passing,
    )


@pytest_asyncio.fixture
async def enrollment(engine, learning_path, user_id):
    return await engine.manager.enroll(user_id, learning_path.path_id)


class TestPercentHalfUp:
    def test_rounds_halves_up(self):
        assert percent_half_up(1, 8) == 13  # 12.5
        assert percent_half_up(1, 3) == 33
        assert percent_half_up(2, 3) == 67
        assert percent_half_up(199, 200) == 100

    def test_zero_denominator(self):
        assert percent_half_up(0, 0) == 0


class TestGradeAnswers:
    def test_uniform_weights(self):
        quiz = weighted_quiz([1, 1, 1, 1])

        grade = grade_answers(quiz, [0, 0, 0, 1])

        assert grade.score_percent == 75
        assert grade.passed is True
        assert grade.earned_points == 3
        assert grade.total_points == 4
        assert [r.correct for r in grade.question_results] == [True, True, True, False]

    def test_weighted_questions(self):
        quiz = weighted_quiz([1, 3])

        grade = grade_answers(quiz, [1, 0])

        assert grade.score_percent == 75
        assert grade.question_results[1].points_awarded == 3
        assert grade.question_results[0].points_possible == 1

    def test_score_equal_to_threshold_passes(self):
        quiz = weighted_quiz([1] * 10, passing=70)

        grade = grade_answers(quiz, [0] * 7 + [1] * 3)

        assert grade.score_percent == 70
        assert grade.passed is True

    def test_half_point_rounds_up(self):
        quiz = weighted_quiz([1] * 8, passing=13)

        grade = grade_answers(quiz, [0] + [1] * 7)

        assert grade.score_percent == 13
        assert grade.passed is True

    def test_answer_count_must_match(self):
        quiz = weighted_quiz([1, 1, 1])

        with pytest.raises(InvalidAnswersError) as exc_info:
            grade_answers(quiz, [0, 0])

        assert exc_info.value.details() == {"expected": 3, "received": 2}

    def test_option_index_must_exist(self):
        quiz = weighted_quiz([1, 1, 1])

        with pytest.raises(InvalidAnswersError) as exc_info:
            grade_answers(quiz, [0, 2, -1])

        assert exc_info.value.invalid_questions == [1, 2]
        assert exc_info.value.details()["invalid_questions"] == [1, 2]


class TestSubmitAttempt:
    @pytest.mark.asyncio
    async def test_attempt_numbers_increase(self, engine, learning_path, enrollment):
        quiz_id = learning_path.quiz.id

        numbers = [
            (await engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(i)))
            .attempt_number
            for i in range(3)
        ]

        assert numbers == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_concurrent_submissions_get_distinct_numbers(
        self, engine, learning_path, enrollment
    ):
        quiz_id = learning_path.quiz.id

        attempts = await asyncio.gather(
            engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(2)),
            engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(3)),
        )

        assert sorted(a.attempt_number for a in attempts) == [1, 2]

    @pytest.mark.asyncio
    async def test_attempts_exhausted(self, engine, learning_path, enrollment):
        quiz_id = learning_path.quiz.id
        for _ in range(3):
            await engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(1))

        with pytest.raises(AttemptsExhaustedError) as exc_info:
            await engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(5))

        assert exc_info.value.max_attempts == 3

    @pytest.mark.asyncio
    async def test_admin_override_grants_more(self, engine, learning_path, enrollment):
        quiz_id = learning_path.quiz.id
        for _ in range(3):
            await engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(1))

        allowance = await engine.grader.grant_extra_attempts(quiz_id, enrollment.id, 1)
        attempt = await engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(5))

        assert allowance.used == 3
        assert allowance.allowed == 4
        assert allowance.remaining == 1
        assert attempt.attempt_number == 4
        assert attempt.passed is True

    @pytest.mark.asyncio
    async def test_quiz_without_limit_uses_default(self, engine, learning_path, enrollment):
        quiz = learning_path.quiz
        quiz.max_attempts = None

        allowance = await engine.grader.get_allowance(quiz, enrollment.id)

        assert allowance.allowed == engine.grader.default_max_attempts

    @pytest.mark.asyncio
    async def test_wrong_answer_count_stores_nothing(self, engine, learning_path, enrollment):
        quiz_id = learning_path.quiz.id

        with pytest.raises(InvalidAnswersError):
            await engine.grader.submit_attempt(quiz_id, enrollment.id, [0, 0])

        assert await engine.grader.list_attempts(quiz_id, enrollment.id) == []

    @pytest.mark.asyncio
    async def test_out_of_range_option_stores_nothing(self, engine, learning_path, enrollment):
        quiz_id = learning_path.quiz.id

        with pytest.raises(InvalidAnswersError):
            await engine.grader.submit_attempt(quiz_id, enrollment.id, [0, 0, 0, 0, 3])

        assert await engine.grader.list_attempts(quiz_id, enrollment.id) == []

    @pytest.mark.asyncio
    async def test_inactive_enrollment(self, engine, learning_path, enrollment):
        await engine.manager.drop(enrollment.id)

        with pytest.raises(InvalidEnrollmentStateError):
            await engine.grader.submit_attempt(
                learning_path.quiz.id, enrollment.id, answers_scoring(5)
            )

    @pytest.mark.asyncio
    async def test_quiz_of_other_path(self, engine, enrollment):
        module = engine.catalog.add_module(Module(id=uuid4(), path_id=uuid4(), body="x"))
        quiz = engine.catalog.add_quiz(make_quiz(module.id))

        with pytest.raises(ModuleNotInPathError):
            await engine.grader.submit_attempt(quiz.id, enrollment.id, answers_scoring(5))

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, engine, enrollment):
        with pytest.raises(NotFoundError) as exc_info:
            await engine.grader.submit_attempt(uuid4(), enrollment.id, [0])
        assert exc_info.value.code == "quiz_not_found"


class TestBestPassingAttempt:
    @pytest.mark.asyncio
    async def test_highest_score_earliest_on_tie(self, engine, learning_path, enrollment):
        quiz = learning_path.quiz
        quiz.max_attempts = 5
        for correct in (4, 5, 5, 2):
            await engine.grader.submit_attempt(quiz.id, enrollment.id, answers_scoring(correct))

        best = await engine.grader.best_passing_attempt(quiz.id, enrollment.id)

        assert best.score_percent == 100
        assert best.attempt_number == 2

    @pytest.mark.asyncio
    async def test_none_when_nothing_passed(self, engine, learning_path, enrollment):
        quiz_id = learning_path.quiz.id
        await engine.grader.submit_attempt(quiz_id, enrollment.id, answers_scoring(3))

        assert await engine.grader.best_passing_attempt(quiz_id, enrollment.id) is None
