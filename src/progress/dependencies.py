"""FastAPI dependencies for module progress.

Provides dependency injection for:
- Module progress tracker
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ModuleProgressTracker


async def get_progress_tracker(request: Request) -> ModuleProgressTracker:
    """Get module progress tracker from app state.

    Args:
        request: FastAPI request

    Returns:
        ModuleProgressTracker instance
    """
    app_state = request.app.state
    if not getattr(app_state, "progress_tracker", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_tracker


# Type alias for dependency injection
ProgressTrackerDep = Annotated[ModuleProgressTracker, Depends(get_progress_tracker)]
