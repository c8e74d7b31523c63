"""Learning path content definitions (read-only to the engine).

Provides:
- Path, module and quiz entities with the closed content-type variant
- Cassandra repository for definitions
- Authoring-time validation of variants, quiz links and prerequisite graphs
"""

from .models import (
    CATALOG_TABLES_CQL,
    ContentType,
    LearningPath,
    Module,
    PathStatus,
    Quiz,
    QuizQuestion,
)


__all__ = [
    "CATALOG_TABLES_CQL",
    "ContentType",
    "LearningPath",
    "Module",
    "PathStatus",
    "Quiz",
    "QuizQuestion",
]
