"""Read access to learning paths, modules and quizzes stored in Cassandra."""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import LearningPath, Module, Quiz


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CatalogRepository:
    """Module/path repository consumed by the engine (read-only)."""

    def __init__(self, session: "Session", keyspace: str, default_passing_score: int = 70):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.default_passing_score = default_passing_score
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_path = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.learning_paths WHERE id = ?
        """)

        self._get_module = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.path_modules WHERE id = ?
        """)

        self._get_path_modules = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.path_modules WHERE path_id = ?
        """)

        self._get_quiz = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quizzes WHERE id = ?
        """)

    async def get_path(self, path_id: UUID) -> LearningPath | None:
        result = await self.session.aexecute(self._get_path, [path_id])
        row = result.one()
        return LearningPath.from_row(row) if row else None

    async def get_module(self, module_id: UUID) -> Module | None:
        result = await self.session.aexecute(self._get_module, [module_id])
        row = result.one()
        return Module.from_row(row) if row else None

    async def get_path_modules(self, path_id: UUID) -> list[Module]:
        """All modules of a path ordered by ``order_index``."""
        rows = await self.session.aexecute(self._get_path_modules, [path_id])
        modules = [Module.from_row(row) for row in rows]
        modules.sort(key=lambda m: (m.order_index, str(m.id)))
        return modules

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        result = await self.session.aexecute(self._get_quiz, [quiz_id])
        row = result.one()
        if row is None:
            return None
        return Quiz.from_row(row, default_passing_score=self.default_passing_score)
