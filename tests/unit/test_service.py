"""Tests for the PracticeService facade: transactions, retries and the catalog surface."""
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from src.quiz.errors import NotFoundError, RetryableIOError
from src.quiz.leaderboard import LeaderboardAggregator
from src.quiz.service import PracticeService


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retrying_service(seeded_factory, settings, clock, sleeps):
    return PracticeService(seeded_factory, settings=settings, clock=clock, sleep=sleeps.append)


def test_transient_failure_is_retried_silently(retrying_service, sleeps, settings):
    calls = []

    def work(db):
        calls.append(db)
        if len(calls) == 1:
            raise OperationalError("SELECT 1", {}, Exception("connection reset"))
        return "done"

    assert retrying_service._run("probe", work) == "done"
    assert len(calls) == 2
    assert sleeps == [settings.store_retry_backoff_seconds]


def test_persistent_failure_surfaces_retryable(retrying_service, settings):
    def work(db):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    with pytest.raises(RetryableIOError):
        retrying_service._run("probe", work)


def test_failed_transaction_is_rolled_back(service):
    snapshot = service.start_or_resume("alice", "Paper7")

    def work(db):
        service._sessions(db).record_answer(snapshot.id, 1, "A", snapshot.version)
        raise NotFoundError("abort")

    with pytest.raises(NotFoundError):
        service._run("abort", work)

    assert service.get_session(snapshot.id).version == 1


def _broken_record(self, result):
    raise RetryableIOError("board unavailable")


def test_leaderboard_refresh_failure_keeps_result(service, monkeypatch):
    monkeypatch.setattr(LeaderboardAggregator, "record", _broken_record)
    snapshot = service.start_or_resume("alice", "Paper7")

    outcome = service.complete_session(snapshot.id, "key-1")

    assert service.list_results("alice")[0].id == outcome.result.id
    assert service.get_leaderboard() == []

    monkeypatch.undo()
    assert [e.result_id for e in service.rebuild_leaderboard()] == [outcome.result.id]


def test_store_error_in_refresh_does_not_fail_completion(service, monkeypatch):
    def duplicate_row(self, result):
        raise IntegrityError(
            "INSERT INTO leaderboard_entries", {}, Exception("UNIQUE constraint failed")
        )

    monkeypatch.setattr(LeaderboardAggregator, "record", duplicate_row)
    snapshot = service.start_or_resume("alice", "Paper7")

    outcome = service.complete_session(snapshot.id, "key-1")

    assert outcome.replayed is False
    assert service.list_results("alice")[0].id == outcome.result.id


def test_replay_places_result_missed_by_refresh(service, monkeypatch):
    snapshot = service.start_or_resume("alice", "Paper7")
    monkeypatch.setattr(LeaderboardAggregator, "record", _broken_record)
    outcome = service.complete_session(snapshot.id, "key-1")
    monkeypatch.undo()

    service.complete_session(snapshot.id, "key-1")

    assert [e.result_id for e in service.get_leaderboard()] == [outcome.result.id]


def test_best_score(service):
    snapshot = service.start_or_resume("alice", "Paper7")
    service.submit_answer(snapshot.id, 1, "A", snapshot.version)
    service.complete_session(snapshot.id, "key-1")

    assert service.best_score("alice", "Paper7") == 1
    assert service.best_score("alice", "Paper8") is None
    with pytest.raises(NotFoundError):
        service.best_score("alice", "Paper99")


def test_catalog_surface(service):
    assert len(service.list_papers()) == 31
    assert len(service.get_paper("Paper12").questions) == 100
    assert service.get_question("Paper12", 100).number == 100
