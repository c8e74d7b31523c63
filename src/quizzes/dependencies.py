"""FastAPI dependencies for quiz grading."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import QuizGrader


async def get_quiz_grader(request: Request) -> QuizGrader:
    """Get quiz grader from app state."""
    app_state = request.app.state
    if not getattr(app_state, "quiz_grader", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quiz service not available",
        )
    return app_state.quiz_grader


QuizGraderDep = Annotated[QuizGrader, Depends(get_quiz_grader)]
