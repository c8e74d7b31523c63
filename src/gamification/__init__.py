"""Gamification ledger module.

Provides:
- Completion points credited once per (enrollment, module)
- Daily streaks and levels
- Points transaction history
"""

from .models import (
    GAMIFICATION_TABLES_CQL,
    PointsTransaction,
    TransactionSource,
    UserGamificationState,
)


__all__ = [
    "GAMIFICATION_TABLES_CQL",
    "PointsTransaction",
    "TransactionSource",
    "UserGamificationState",
]
