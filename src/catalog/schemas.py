"""Pydantic schemas for authoring-time validation of path content.

Content types form a closed variant: each type requires its own field
(video_url for VIDEO, quiz_id for QUIZ...). The check runs once when a
path is validated, never on the completion hot path.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from src.core.exceptions import InvalidModuleDefinitionError

from .models import REQUIRED_FIELD_BY_CONTENT_TYPE, ContentType, Module, Quiz


class ModuleDefinition(BaseModel):
    """Module as authored, validated against its content type."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    path_id: UUID
    order_index: int = Field(ge=0)
    content_type: ContentType
    prerequisite_module_ids: frozenset[UUID] = frozenset()
    completion_points: int = Field(ge=0)
    quiz_id: UUID | None = None
    body: str | None = None
    video_url: str | None = None
    audio_url: str | None = None
    document_url: str | None = None
    external_link: str | None = None

    @model_validator(mode="after")
    def check_variant_fields(self) -> "ModuleDefinition":
        required = REQUIRED_FIELD_BY_CONTENT_TYPE[self.content_type]
        if required is not None and not getattr(self, required):
            msg = f"{self.content_type.value} module requires {required}"
            raise ValueError(msg)
        if self.id in self.prerequisite_module_ids:
            msg = "module cannot list itself as a prerequisite"
            raise ValueError(msg)
        return self


def validate_module_definition(module: Module) -> ModuleDefinition:
    """Validate a stored module; raise InvalidModuleDefinitionError on failure."""
    try:
        return ModuleDefinition.model_validate(module)
    except ValidationError as e:
        reason = "; ".join(err["msg"] for err in e.errors())
        raise InvalidModuleDefinitionError(module.id, reason) from e


def validate_quiz_link(module: Module, quiz: Quiz | None) -> None:
    """Check a quiz-gated module points to a usable quiz."""
    if quiz is None:
        raise InvalidModuleDefinitionError(module.id, "linked quiz does not exist")
    if quiz.module_id != module.id:
        raise InvalidModuleDefinitionError(module.id, "linked quiz belongs to another module")
    if not quiz.questions or quiz.total_points <= 0:
        raise InvalidModuleDefinitionError(module.id, "linked quiz has no scorable questions")
    for index, question in enumerate(quiz.questions):
        if question.points < 0:
            raise InvalidModuleDefinitionError(
                module.id, f"question {index} has negative points"
            )
        if not 0 <= question.correct_option_index < len(question.options):
            raise InvalidModuleDefinitionError(
                module.id, f"question {index} answer key is out of range"
            )


class PathValidationResponse(BaseModel):
    """Result of validating a path's modules and prerequisite graph."""

    path_id: UUID
    valid: bool = True
    module_count: int
    completion_order: list[UUID] = Field(
        default_factory=list,
        description="A module order that satisfies every prerequisite",
    )
