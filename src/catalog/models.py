"""Database models for learning path content definitions.

Cassandra table definitions for:
- Learning paths: Publication status of a path
- Modules: Ordered units of a path with prerequisites and completion points
- Quizzes: Answer keys gating module completion

These tables are written by content authoring. The engine only reads them.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID


class PathStatus(str, Enum):
    """Learning path publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Module content type (closed variant)."""

    TEXT = "text"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    INTERACTIVE = "interactive"
    QUIZ = "quiz"
    ASSESSMENT = "assessment"
    EXTERNAL_LINK = "external_link"


# Field each content type must carry (None = no extra field)
REQUIRED_FIELD_BY_CONTENT_TYPE: dict[ContentType, str | None] = {
    ContentType.TEXT: "body",
    ContentType.VIDEO: "video_url",
    ContentType.AUDIO: "audio_url",
    ContentType.DOCUMENT: "document_url",
    ContentType.INTERACTIVE: None,
    ContentType.QUIZ: "quiz_id",
    ContentType.ASSESSMENT: "quiz_id",
    ContentType.EXTERNAL_LINK: "external_link",
}


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

LEARNING_PATHS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.learning_paths (
    id UUID PRIMARY KEY,
    title TEXT,
    status TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.path_modules (
    id UUID PRIMARY KEY,
    path_id UUID,
    order_index INT,
    title TEXT,
    content_type TEXT,
    prerequisite_module_ids SET<UUID>,
    completion_points INT,
    quiz_id UUID,
    body TEXT,
    video_url TEXT,
    audio_url TEXT,
    document_url TEXT,
    external_link TEXT
)
"""

MODULES_BY_PATH_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS path_modules_path_idx
ON {keyspace}.path_modules (path_id)
"""

# Questions are stored as a JSON document: the list is always read whole
QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes (
    id UUID PRIMARY KEY,
    module_id UUID,
    title TEXT,
    passing_score_percent INT,
    max_attempts INT,
    questions TEXT
)
"""

CATALOG_TABLES_CQL = [
    LEARNING_PATHS_TABLE_CQL,
    MODULES_TABLE_CQL,
    MODULES_BY_PATH_INDEX_CQL,
    QUIZZES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LearningPath:
    """Learning path header (the module list is queried separately)."""

    def __init__(self, id: UUID, title: str = "", status: str = PathStatus.DRAFT.value):
        self.id = id
        self.title = title
        self.status = status

    @property
    def is_published(self) -> bool:
        return self.status == PathStatus.PUBLISHED.value

    @classmethod
    def from_row(cls, row: Any) -> "LearningPath":
        return cls(
            id=row.id,
            title=row.title or "",
            status=row.status or PathStatus.DRAFT.value,
        )

    def __repr__(self) -> str:
        return f"<LearningPath {self.id} {self.status}>"


class Module:
    """Module of a learning path.

    Attributes:
        id: Module UUID
        path_id: Owning learning path
        order_index: Position inside the path
        content_type: One of ContentType
        prerequisite_module_ids: Modules that must be completed first
        completion_points: Points credited once on first completion
        quiz_id: Quiz gating completion, if any
    """

    def __init__(
        self,
        id: UUID,
        path_id: UUID,
        order_index: int = 0,
        title: str = "",
        content_type: str = ContentType.TEXT.value,
        prerequisite_module_ids: frozenset[UUID] | set[UUID] | None = None,
        completion_points: int = 0,
        quiz_id: UUID | None = None,
        body: str | None = None,
        video_url: str | None = None,
        audio_url: str | None = None,
        document_url: str | None = None,
        external_link: str | None = None,
    ):
        self.id = id
        self.path_id = path_id
        self.order_index = order_index
        self.title = title
        self.content_type = content_type
        self.prerequisite_module_ids = frozenset(prerequisite_module_ids or ())
        self.completion_points = completion_points
        self.quiz_id = quiz_id
        self.body = body
        self.video_url = video_url
        self.audio_url = audio_url
        self.document_url = document_url
        self.external_link = external_link

    @property
    def is_quiz_gated(self) -> bool:
        return self.quiz_id is not None

    @classmethod
    def from_row(cls, row: Any) -> "Module":
        """Create Module instance from Cassandra row."""
        return cls(
            id=row.id,
            path_id=row.path_id,
            order_index=row.order_index or 0,
            title=row.title or "",
            content_type=row.content_type or ContentType.TEXT.value,
            prerequisite_module_ids=set(row.prerequisite_module_ids or ()),
            completion_points=row.completion_points or 0,
            quiz_id=row.quiz_id,
            body=row.body,
            video_url=row.video_url,
            audio_url=row.audio_url,
            document_url=row.document_url,
            external_link=row.external_link,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path_id": self.path_id,
            "order_index": self.order_index,
            "title": self.title,
            "content_type": self.content_type,
            "prerequisite_module_ids": sorted(self.prerequisite_module_ids, key=str),
            "completion_points": self.completion_points,
            "quiz_id": self.quiz_id,
            "body": self.body,
            "video_url": self.video_url,
            "audio_url": self.audio_url,
            "document_url": self.document_url,
            "external_link": self.external_link,
        }

    def __repr__(self) -> str:
        return f"<Module {self.id} #{self.order_index} {self.content_type}>"


@dataclass(frozen=True)
class QuizQuestion:
    """A single-choice question; ``points`` defaults to uniform weight 1."""

    text: str
    options: tuple[str, ...]
    correct_option_index: int
    points: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizQuestion":
        points = data.get("points")
        return cls(
            text=data.get("text", ""),
            options=tuple(data.get("options") or ()),
            correct_option_index=int(data["correct_option_index"]),
            points=1 if points is None else int(points),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "options": list(self.options),
            "correct_option_index": self.correct_option_index,
            "points": self.points,
        }


class Quiz:
    """Quiz answer key.

    ``max_attempts`` is None when the quiz does not declare a limit; the
    grader then applies the configured default.
    """

    def __init__(
        self,
        id: UUID,
        module_id: UUID,
        questions: list[QuizQuestion],
        passing_score_percent: int = 70,
        max_attempts: int | None = None,
        title: str = "",
    ):
        self.id = id
        self.module_id = module_id
        self.questions = list(questions)
        self.passing_score_percent = passing_score_percent
        self.max_attempts = max_attempts
        self.title = title

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @classmethod
    def from_row(cls, row: Any, default_passing_score: int = 70) -> "Quiz":
        """Create Quiz instance from Cassandra row."""
        raw_questions = json.loads(row.questions) if row.questions else []
        return cls(
            id=row.id,
            module_id=row.module_id,
            questions=[QuizQuestion.from_dict(q) for q in raw_questions],
            passing_score_percent=(
                row.passing_score_percent
                if row.passing_score_percent is not None
                else default_passing_score
            ),
            max_attempts=row.max_attempts,
            title=row.title or "",
        )

    def __repr__(self) -> str:
        return f"<Quiz {self.id} questions={len(self.questions)}>"
