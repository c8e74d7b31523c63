"""HTTP-level tests: routing, error mapping and caller identity."""

from uuid import uuid4

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from src.core.exceptions import (
    AlreadyEnrolledError,
    AttemptsExhaustedError,
    ConcurrencyConflictError,
    NotFoundError,
    PrerequisiteNotMetError,
    QuizNotPassedError,
)
from src.core.http_errors import handle_learning_error, status_for
from src.main import create_app
from src.users.models import UserProfile, UserRole
from tests.conftest import answers_scoring


@pytest.fixture
def api(engine) -> TestClient:
    app = create_app()
    app.state.user_directory = engine.directory
    app.state.quiz_grader = engine.grader
    app.state.gamification_ledger = engine.ledger
    app.state.leaderboard_aggregator = engine.aggregator
    app.state.enrollment_manager = engine.manager
    app.state.progress_tracker = engine.tracker
    return TestClient(app)


@pytest.fixture
def admin(engine) -> UserProfile:
    return engine.directory.add(UserProfile(id=uuid4(), role=UserRole.ADMIN.value))


def enroll(api, user_id, path_id) -> dict:
    response = api.post(
        "/v1/enrollments", json={"user_id": str(user_id), "path_id": str(path_id)}
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestStatusMapping:
    def test_status_codes(self):
        assert status_for(NotFoundError("module", uuid4())) == 404
        assert status_for(AlreadyEnrolledError(uuid4())) == 409
        assert status_for(PrerequisiteNotMetError(uuid4(), [uuid4()])) == 422
        assert status_for(QuizNotPassedError(uuid4(), 1, 2)) == 422
        assert status_for(AttemptsExhaustedError(uuid4(), 3)) == 429
        assert status_for(ConcurrencyConflictError("user_gamification", uuid4())) == 503

    def test_detail_carries_code_and_context(self):
        module_id, unmet = uuid4(), uuid4()

        exc = handle_learning_error(PrerequisiteNotMetError(module_id, [unmet]))

        assert exc.detail["code"] == "prerequisite_not_met"
        assert exc.detail["details"]["unmet_module_ids"] == [str(unmet)]


class TestEnrollmentRoutes:
    def test_enroll_and_conflict(self, api, learning_path, user_id):
        created = enroll(api, user_id, learning_path.path_id)

        response = api.post(
            "/v1/enrollments",
            json={"user_id": str(user_id), "path_id": str(learning_path.path_id)},
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["code"] == "already_enrolled"
        assert body["details"]["enrollment_id"] == created["id"]

    def test_unknown_enrollment_is_404(self, api):
        response = api.get(f"/v1/enrollments/{uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "enrollment_not_found"

    def test_progress_summary(self, api, learning_path, user_id):
        created = enroll(api, user_id, learning_path.path_id)

        response = api.get(f"/v1/enrollments/{created['id']}/progress")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["modules_total"] == 3


class TestProgressRoutes:
    def test_prerequisite_error_lists_unmet(self, api, learning_path, user_id):
        created = enroll(api, user_id, learning_path.path_id)

        response = api.post(
            f"/v1/progress/{created['id']}/modules/{learning_path.m2.id}/complete"
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        body = response.json()
        assert body["code"] == "prerequisite_not_met"
        assert body["details"]["unmet_module_ids"] == [str(learning_path.m1.id)]

    def test_complete_then_points_visible(self, api, learning_path, user_id):
        created = enroll(api, user_id, learning_path.path_id)

        response = api.post(
            f"/v1/progress/{created['id']}/modules/{learning_path.m1.id}/complete"
        )
        state = api.get(f"/v1/gamification/users/{user_id}").json()

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "completed"
        assert state["total_points"] == 50
        assert state["level_progress"]["level"] == 1


class TestQuizRoutes:
    def test_submit_reports_remaining_attempts(self, api, learning_path, user_id):
        created = enroll(api, user_id, learning_path.path_id)

        response = api.post(
            f"/v1/quizzes/{learning_path.quiz.id}/attempts",
            json={"enrollment_id": created["id"], "answers": answers_scoring(3)},
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["score_percent"] == 60
        assert body["passed"] is False
        assert body["attempts_used"] == 1
        assert body["attempts_remaining"] == 2

    def test_allowance_requires_caller(self, api, learning_path):
        response = api.post(
            f"/v1/quizzes/{learning_path.quiz.id}/allowances",
            json={"enrollment_id": str(uuid4()), "extra_attempts": 1},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_allowance_requires_admin(self, api, learning_path, user_id):
        response = api.post(
            f"/v1/quizzes/{learning_path.quiz.id}/allowances",
            json={"enrollment_id": str(uuid4()), "extra_attempts": 1},
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_grants_attempts(self, api, learning_path, user_id, admin):
        created = enroll(api, user_id, learning_path.path_id)

        response = api.post(
            f"/v1/quizzes/{learning_path.quiz.id}/allowances",
            json={"enrollment_id": created["id"], "extra_attempts": 2},
            headers={"X-User-ID": str(admin.id)},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["attempts_allowed"] == 5


class TestLeaderboardRoutes:
    def test_empty_board(self, api):
        response = api.get("/v1/leaderboard/weekly")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["entries"] == []

    def test_unknown_period_rejected(self, api):
        response = api.get("/v1/leaderboard/daily")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
