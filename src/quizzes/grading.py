"""Pure quiz grading.

Questions are binary-correct. Each question weighs its declared points
(1 when unweighted); the score is earned points over total points as a
percentage rounded half-up. A score equal to the passing threshold passes.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from src.catalog.models import Quiz
from src.core.exceptions import InvalidAnswersError
from src.utils.numbers import percent_half_up


@dataclass(frozen=True)
class QuestionResult:
    """Grading detail of one question."""

    index: int
    selected_option: int
    correct: bool
    points_awarded: int
    points_possible: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuestionResult":
        return cls(
            index=int(data["index"]),
            selected_option=int(data["selected_option"]),
            correct=bool(data["correct"]),
            points_awarded=int(data["points_awarded"]),
            points_possible=int(data["points_possible"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "selected_option": self.selected_option,
            "correct": self.correct,
            "points_awarded": self.points_awarded,
            "points_possible": self.points_possible,
        }


@dataclass(frozen=True)
class GradeResult:
    score_percent: int
    passed: bool
    earned_points: int
    total_points: int
    question_results: tuple[QuestionResult, ...]


def grade_answers(quiz: Quiz, answers: Sequence[int]) -> GradeResult:
    """Grade one submission against the quiz's answer key.

    Args:
        quiz: Quiz with questions and passing threshold
        answers: Selected option index, one per question in order

    Returns:
        GradeResult with the score and per-question detail

    Raises:
        InvalidAnswersError: Answer count differs from question count, or a
            selected index is not one of the question's options
    """
    if len(answers) != len(quiz.questions):
        raise InvalidAnswersError(expected=len(quiz.questions), received=len(answers))
    out_of_range = [
        index
        for index, (question, selected) in enumerate(zip(quiz.questions, answers, strict=True))
        if not 0 <= selected < len(question.options)
    ]
    if out_of_range:
        raise InvalidAnswersError(
            expected=len(quiz.questions), received=len(answers), invalid_questions=out_of_range
        )

    results = []
    earned = 0
    for index, (question, selected) in enumerate(zip(quiz.questions, answers, strict=True)):
        correct = selected == question.correct_option_index
        awarded = question.points if correct else 0
        earned += awarded
        results.append(
            QuestionResult(
                index=index,
                selected_option=selected,
                correct=correct,
                points_awarded=awarded,
                points_possible=question.points,
            )
        )

    total = quiz.total_points
    score = percent_half_up(earned, total)
    return GradeResult(
        score_percent=score,
        passed=score >= quiz.passing_score_percent,
        earned_points=earned,
        total_points=total,
        question_results=tuple(results),
    )
