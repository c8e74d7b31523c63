"""Database models for quiz attempts.

Cassandra table definitions for:
- Quiz attempts: Immutable graded submissions per (quiz, enrollment)
- Attempt allowances: Extra attempts granted by an admin override

Architecture: attempts of one (quiz, enrollment) share a partition and are
clustered by attempt number. A new number is claimed with
``INSERT ... IF NOT EXISTS``, so two concurrent submissions can never
store the same attempt number.
"""

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware, utc_now

from .grading import QuestionResult


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    quiz_id UUID,
    enrollment_id UUID,
    attempt_number INT,
    id UUID,
    user_id UUID,
    raw_answers LIST<INT>,
    score_percent INT,
    passed BOOLEAN,
    earned_points INT,
    total_points INT,
    question_results TEXT,
    submitted_at TIMESTAMP,
    PRIMARY KEY ((quiz_id, enrollment_id), attempt_number)
) WITH CLUSTERING ORDER BY (attempt_number ASC)
"""

# Counter table: extra attempts granted on top of the quiz limit
QUIZ_ATTEMPT_ALLOWANCES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempt_allowances (
    quiz_id UUID,
    enrollment_id UUID,
    extra_attempts COUNTER,
    PRIMARY KEY ((quiz_id, enrollment_id))
)
"""

QUIZZES_TABLES_CQL = [
    QUIZ_ATTEMPTS_TABLE_CQL,
    QUIZ_ATTEMPT_ALLOWANCES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class QuizAttempt:
    """One graded submission. Never updated after insert.

    Attributes:
        id: Attempt UUID
        quiz_id: Quiz UUID
        enrollment_id: Enrollment UUID
        attempt_number: 1-based, increasing per (quiz, enrollment)
        raw_answers: Selected option index per question
        score_percent: Earned points over total points, rounded half-up
        passed: score_percent >= quiz passing score
    """

    def __init__(
        self,
        id: UUID,
        quiz_id: UUID,
        enrollment_id: UUID,
        attempt_number: int,
        raw_answers: list[int],
        score_percent: int,
        passed: bool,
        user_id: UUID | None = None,
        earned_points: int = 0,
        total_points: int = 0,
        question_results: list[QuestionResult] | None = None,
        submitted_at: datetime | None = None,
    ):
        self.id = id
        self.quiz_id = quiz_id
        self.enrollment_id = enrollment_id
        self.attempt_number = attempt_number
        self.raw_answers = list(raw_answers)
        self.score_percent = score_percent
        self.passed = passed
        self.user_id = user_id
        self.earned_points = earned_points
        self.total_points = total_points
        self.question_results = list(question_results or ())
        self.submitted_at = ensure_utc_aware(submitted_at) or utc_now()

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        raw_results = json.loads(row.question_results) if row.question_results else []
        return cls(
            id=row.id,
            quiz_id=row.quiz_id,
            enrollment_id=row.enrollment_id,
            attempt_number=row.attempt_number,
            raw_answers=list(row.raw_answers or ()),
            score_percent=row.score_percent or 0,
            passed=bool(row.passed),
            user_id=row.user_id,
            earned_points=row.earned_points or 0,
            total_points=row.total_points or 0,
            question_results=[QuestionResult.from_dict(r) for r in raw_results],
            submitted_at=row.submitted_at,
        )

    def question_results_json(self) -> str:
        return json.dumps([r.to_dict() for r in self.question_results])

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "enrollment_id": self.enrollment_id,
            "attempt_number": self.attempt_number,
            "raw_answers": self.raw_answers,
            "score_percent": self.score_percent,
            "passed": self.passed,
            "user_id": self.user_id,
            "earned_points": self.earned_points,
            "total_points": self.total_points,
            "question_results": [r.to_dict() for r in self.question_results],
            "submitted_at": self.submitted_at,
        }

    def __repr__(self) -> str:
        return (
            f"<QuizAttempt quiz={self.quiz_id} #{self.attempt_number} "
            f"{self.score_percent}% passed={self.passed}>"
        )
