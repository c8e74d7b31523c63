"""FastAPI dependencies for enrollments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import EnrollmentManager


async def get_enrollment_manager(request: Request) -> EnrollmentManager:
    """Get enrollment manager from app state."""
    app_state = request.app.state
    if not getattr(app_state, "enrollment_manager", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return app_state.enrollment_manager


EnrollmentManagerDep = Annotated[EnrollmentManager, Depends(get_enrollment_manager)]
