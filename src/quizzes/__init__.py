"""Quiz grading module.

Provides:
- Binary-correct grading with per-question weights
- Immutable attempt history with serialized attempt numbers
- Attempt limits with admin override
"""

from .grading import GradeResult, QuestionResult, grade_answers
from .models import QUIZZES_TABLES_CQL, QuizAttempt


__all__ = [
    "QUIZZES_TABLES_CQL",
    "GradeResult",
    "QuestionResult",
    "QuizAttempt",
    "grade_answers",
]
