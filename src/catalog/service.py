"""Authoring-time validation of learning paths.

Run after a path or one of its modules changes: every module must carry the
field its content type requires, quiz-gated modules must point to a usable
quiz of their own, and the prerequisite graph must be acyclic.
"""

from uuid import UUID

import structlog

from src.core.exceptions import NotFoundError
from src.progress.prerequisites import PrerequisiteResolver

from .models import ContentType
from .repository import CatalogRepository
from .schemas import PathValidationResponse, validate_module_definition, validate_quiz_link


logger = structlog.get_logger(__name__)

_QUIZ_CONTENT_TYPES = {ContentType.QUIZ.value, ContentType.ASSESSMENT.value}


class PathValidationService:
    """Validates a path's modules and prerequisite graph."""

    def __init__(self, catalog: CatalogRepository, resolver: PrerequisiteResolver | None = None):
        self.catalog = catalog
        self.resolver = resolver or PrerequisiteResolver()

    async def validate_path(self, path_id: UUID) -> PathValidationResponse:
        """Validate every module of a path.

        Raises:
            NotFoundError: Path does not exist
            InvalidModuleDefinitionError: A module or its quiz link is invalid
            CyclicPrerequisiteError: Prerequisites form a cycle
        """
        path = await self.catalog.get_path(path_id)
        if path is None:
            raise NotFoundError("path", path_id)

        modules = await self.catalog.get_path_modules(path_id)
        for module in modules:
            validate_module_definition(module)
            if module.is_quiz_gated or module.content_type in _QUIZ_CONTENT_TYPES:
                validate_quiz_link(module, await self.catalog.get_quiz(module.quiz_id))

        order = self.resolver.validate_graph(modules)

        logger.info("path_validated", path_id=str(path_id), module_count=len(modules))
        return PathValidationResponse(
            path_id=path_id,
            valid=True,
            module_count=len(modules),
            completion_order=order,
        )
