"""Module progress tracking.

Provides:
- Module state machine (not_started -> in_progress -> completed)
- Prerequisite graph validation and satisfaction checks
- Completion events for the gamification ledger and path progress
"""

from .models import (
    PROGRESS_TABLES_CQL,
    CompletionEvent,
    ModuleProgress,
    ModuleProgressStatus,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CompletionEvent",
    "ModuleProgress",
    "ModuleProgressStatus",
]
