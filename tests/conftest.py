"""Shared fixtures: a learning path with three modules and a fully wired engine."""

from dataclasses import dataclass
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.catalog.models import ContentType, Module, Quiz, QuizQuestion
from src.enrollments.service import EnrollmentManager
from src.events.bus import CompletionEventBus
from src.gamification.service import GamificationLedger
from src.leaderboard.service import LeaderboardAggregator
from src.progress.service import ModuleProgressTracker
from src.quizzes.service import QuizGrader
from src.users.models import UserProfile, UserRole
from tests.fakes import (
    FakeCatalog,
    FakeEnrollmentRepository,
    FakeGamificationRepository,
    FakeLeaderboardStore,
    FakeProgressRepository,
    FakeQuizAttemptRepository,
    FakeUserDirectory,
)


def make_quiz(module_id: UUID, questions: int = 5, passing: int = 70, max_attempts=3) -> Quiz:
    """Quiz whose correct answer is always option 0."""
    return Quiz(
        id=uuid4(),
        module_id=module_id,
        questions=[
            QuizQuestion(text=f"Q{i}", options=("a", "b", "c"), correct_option_index=0)
            for i in range(questions)
        ],
        passing_score_percent=passing,
        max_attempts=max_attempts,
    )


def answers_scoring(correct: int, total: int = 5) -> list[int]:
    """``correct`` right answers followed by wrong ones."""
    return [0] * correct + [1] * (total - correct)


@dataclass
class LearningPathFixture:
    path_id: UUID
    m1: Module
    m2: Module
    m3: Module
    quiz: Quiz


@dataclass
class Engine:
    catalog: FakeCatalog
    directory: FakeUserDirectory
    enrollments: FakeEnrollmentRepository
    progress: FakeProgressRepository
    attempts: FakeQuizAttemptRepository
    gamification: FakeGamificationRepository
    store: FakeLeaderboardStore
    bus: CompletionEventBus
    grader: QuizGrader
    ledger: GamificationLedger
    aggregator: LeaderboardAggregator
    manager: EnrollmentManager
    tracker: ModuleProgressTracker


@pytest.fixture
def client() -> TestClient:
    """HTTP client without running the lifespan (no database)."""
    from src.main import app

    return TestClient(app)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def learning_path(catalog: FakeCatalog) -> LearningPathFixture:
    """M1 (50 pts) -> M2 (50 pts) -> M3 (quiz-gated, 100 pts)."""
    path_id = uuid4()
    catalog.add_path(path_id)

    m1 = catalog.add_module(
        Module(id=uuid4(), path_id=path_id, order_index=1, title="M1",
               content_type=ContentType.TEXT.value, body="Intro", completion_points=50)
    )
    m2 = catalog.add_module(
        Module(id=uuid4(), path_id=path_id, order_index=2, title="M2",
               content_type=ContentType.VIDEO.value, video_url="https://cdn.example/m2.mp4",
               prerequisite_module_ids={m1.id}, completion_points=50)
    )
    m3_id = uuid4()
    quiz = catalog.add_quiz(make_quiz(m3_id))
    m3 = catalog.add_module(
        Module(id=m3_id, path_id=path_id, order_index=3, title="M3",
               content_type=ContentType.QUIZ.value, quiz_id=quiz.id,
               prerequisite_module_ids={m2.id}, completion_points=100)
    )
    return LearningPathFixture(path_id=path_id, m1=m1, m2=m2, m3=m3, quiz=quiz)


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def engine(catalog: FakeCatalog, user_id: UUID) -> Engine:
    """Services wired the same way the application wires them."""
    directory = FakeUserDirectory(
        [UserProfile(id=user_id, role=UserRole.EMPLOYEE.value, department="sales")]
    )
    enrollments = FakeEnrollmentRepository()
    progress = FakeProgressRepository()
    attempts = FakeQuizAttemptRepository()
    gamification = FakeGamificationRepository()
    store = FakeLeaderboardStore()

    grader = QuizGrader(catalog, attempts, enrollments, retry_base_delay=0)
    bus = CompletionEventBus(redelivery_attempts=3, redelivery_base_delay=0)
    aggregator = LeaderboardAggregator(store, directory)
    ledger = GamificationLedger(
        gamification,
        points_per_level=100,
        max_level=5,
        retry_base_delay=0,
        on_points_credited=aggregator.notify,
    )
    manager = EnrollmentManager(catalog, enrollments, progress)
    tracker = ModuleProgressTracker(
        catalog, progress, enrollments, grader, bus, enrollment_manager=manager
    )

    bus.subscribe("gamification_ledger", ledger.credit_completion)
    bus.subscribe("enrollment_progress", manager.handle_completion)

    return Engine(
        catalog=catalog,
        directory=directory,
        enrollments=enrollments,
        progress=progress,
        attempts=attempts,
        gamification=gamification,
        store=store,
        bus=bus,
        grader=grader,
        ledger=ledger,
        aggregator=aggregator,
        manager=manager,
        tracker=tracker,
    )
