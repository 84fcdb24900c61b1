"""
Integration tests for the REST API.

The practice service is swapped for one bound to an in-memory database via
FastAPI dependency overrides; the lifespan hook is not run.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import src.api.main as api_main
from src.api.main import app
from src.api.routers.practice_router import get_practice_service
from tests.factories import correct_option


@pytest.fixture
def client(service):
    app.dependency_overrides[get_practice_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _start(client, user_id="alice", paper_name="Paper7", **extra):
    response = client.post(
        "/api/sessions", json={"user_id": user_id, "paper_name": paper_name, **extra}
    )
    assert response.status_code == 200, response.text
    return response.json()


# ========================================
# Health
# ========================================


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["service"] == "paper-practice"

    def test_health_ok(self, client, monkeypatch):
        monkeypatch.setattr(api_main, "check_connection", lambda: None)

        body = client.get("/health").json()

        assert body["status"] == "healthy"

    def test_health_reports_database_error(self, client, monkeypatch):
        def unreachable():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(api_main, "check_connection", unreachable)

        body = client.get("/health").json()

        assert body["status"] == "unhealthy"
        assert "database" in body["errors"]

    def test_config_exposes_practice_settings(self, client):
        practice = client.get("/config").json()["practice"]

        assert practice["catalog"]["questions_per_paper"] == 100
        assert practice["leaderboard_size"] == 20


# ========================================
# Catalog
# ========================================


class TestCatalogEndpoints:
    def test_list_papers(self, client):
        papers = client.get("/api/papers").json()

        assert len(papers) == 31
        assert papers[0]["question_count"] == 100

    def test_paper_hides_answer_key(self, client):
        paper = client.get("/api/papers/Paper7").json()

        assert len(paper["questions"]) == 100
        assert "correct_option" not in paper["questions"][0]

    def test_question(self, client):
        question = client.get("/api/papers/Paper7/questions/42").json()

        assert question["number"] == 42
        assert set(question["options"]) == {"A", "B", "C", "D"}

    def test_unknown_paper_is_404(self, client):
        response = client.get("/api/papers/Paper99")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    def test_question_out_of_range_is_422(self, client):
        assert client.get("/api/papers/Paper7/questions/101").status_code == 422


# ========================================
# Sessions
# ========================================


class TestSessionFlow:
    def test_start_resume_answer_navigate_complete(self, client, clock):
        session = _start(client, display_name="Alice")
        assert session["current_question_index"] == 1
        assert session["version"] == 1

        response = client.put(
            f"/api/sessions/{session['id']}/answers/1",
            json={"option": correct_option(1), "expected_version": 1},
        )
        assert response.status_code == 200
        assert response.json()["selected_answers"] == {"1": correct_option(1)}

        moved = client.post(
            f"/api/sessions/{session['id']}/navigate", json={"direction": "next"}
        ).json()
        assert moved["current_question_index"] == 2

        resumed = _start(client)
        assert resumed["id"] == session["id"]
        assert resumed["version"] == 3

        clock.advance(minutes=20)
        response = client.post(
            f"/api/sessions/{session['id']}/complete", json={"idempotency_key": "done-1"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["replayed"] is False
        assert body["result"]["score"] == 1
        assert body["result"]["wrong_answers"] == 99
        assert body["result"]["time_taken_minutes"] == 20

        assert client.get(f"/api/sessions/{session['id']}").status_code == 404

    def test_stale_version_is_409(self, client):
        session = _start(client)
        url = f"/api/sessions/{session['id']}/answers/1"
        client.put(url, json={"option": "A", "expected_version": 1})

        response = client.put(url, json={"option": "B", "expected_version": 1})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "conflict"
        assert detail["current_version"] == 2

    def test_invalid_option_is_422(self, client):
        session = _start(client)

        response = client.put(
            f"/api/sessions/{session['id']}/answers/1",
            json={"option": "E", "expected_version": 1},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_input"

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/sessions/does-not-exist").status_code == 404

    def test_complete_replay_with_header_key(self, client):
        session = _start(client)
        url = f"/api/sessions/{session['id']}/complete"

        first = client.post(url, json={}, headers={"Idempotency-Key": "k-1"}).json()
        second = client.post(url, json={}, headers={"Idempotency-Key": "k-1"}).json()

        assert second["replayed"] is True
        assert second["result"]["id"] == first["result"]["id"]

    def test_complete_requires_key(self, client):
        session = _start(client)

        response = client.post(f"/api/sessions/{session['id']}/complete", json={})

        assert response.status_code == 422


# ========================================
# Leaderboard & users
# ========================================


class TestLeaderboardAndUsers:
    def test_leaderboard_after_completion(self, client):
        session = _start(client, display_name="Alice")
        client.post(f"/api/sessions/{session['id']}/complete", json={"idempotency_key": "k"})

        board = client.get("/api/leaderboard").json()

        assert len(board) == 1
        assert board[0]["rank"] == 1
        assert board[0]["display_name"] == "Alice"

        rebuilt = client.post("/api/leaderboard/rebuild").json()
        assert rebuilt == board

    def test_reset_clears_sessions_keeps_results(self, client):
        finished = _start(client, paper_name="Paper1")
        client.post(f"/api/sessions/{finished['id']}/complete", json={"idempotency_key": "k"})
        for paper in ("Paper2", "Paper3"):
            _start(client, paper_name=paper)

        response = client.delete("/api/users/alice/sessions")

        assert response.status_code == 200
        assert response.json()["sessions_cleared"] == 2
        assert client.get("/api/users/alice/sessions").json() == []
        assert len(client.get("/api/users/alice/results").json()) == 1

    def test_best_score(self, client):
        session = _start(client)
        client.post(f"/api/sessions/{session['id']}/complete", json={"idempotency_key": "k"})

        body = client.get("/api/users/alice/papers/Paper7/best-score").json()

        assert body["best_score"] == 0
