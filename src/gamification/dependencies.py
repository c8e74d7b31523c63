"""FastAPI dependencies for the gamification ledger."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import GamificationLedger


async def get_gamification_ledger(request: Request) -> GamificationLedger:
    """Get gamification ledger from app state."""
    app_state = request.app.state
    if not getattr(app_state, "gamification_ledger", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Gamification service not available",
        )
    return app_state.gamification_ledger


GamificationLedgerDep = Annotated[GamificationLedger, Depends(get_gamification_ledger)]
