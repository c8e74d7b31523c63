"""Pydantic schemas for quiz attempts.

Request and response models for:
- Attempt submission and history
- Attempt allowance (admin override)
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import QuizAttempt


class SubmitAttemptRequest(BaseModel):
    """Answers for one attempt, one selected option index per question."""

    enrollment_id: UUID = Field(..., description="Enrollment UUID")
    answers: list[int] = Field(..., description="Selected option index per question")


class QuestionResultResponse(BaseModel):
    index: int
    selected_option: int
    correct: bool
    points_awarded: int
    points_possible: int


class QuizAttemptResponse(BaseModel):
    """Graded attempt."""

    id: UUID
    quiz_id: UUID
    enrollment_id: UUID
    attempt_number: int
    score_percent: int = Field(ge=0, le=100)
    passed: bool
    earned_points: int
    total_points: int
    raw_answers: list[int]
    question_results: list[QuestionResultResponse] = []
    submitted_at: datetime

    @classmethod
    def from_entity(cls, entity: QuizAttempt) -> "QuizAttemptResponse":
        return cls(
            id=entity.id,
            quiz_id=entity.quiz_id,
            enrollment_id=entity.enrollment_id,
            attempt_number=entity.attempt_number,
            score_percent=entity.score_percent,
            passed=entity.passed,
            earned_points=entity.earned_points,
            total_points=entity.total_points,
            raw_answers=entity.raw_answers,
            question_results=[
                QuestionResultResponse(**r.to_dict()) for r in entity.question_results
            ],
            submitted_at=entity.submitted_at,
        )


class SubmitAttemptResponse(QuizAttemptResponse):
    """Graded attempt plus the attempts left."""

    attempts_used: int
    attempts_remaining: int


class QuizAttemptListResponse(BaseModel):
    items: list[QuizAttemptResponse]
    total: int
    best_passing_attempt_id: UUID | None = None


class GrantAttemptsRequest(BaseModel):
    """Admin override: allow more attempts for one enrollment."""

    enrollment_id: UUID
    extra_attempts: int = Field(..., ge=1, le=20)


class AttemptAllowanceResponse(BaseModel):
    quiz_id: UUID
    enrollment_id: UUID
    attempts_used: int
    attempts_allowed: int
    attempts_remaining: int
