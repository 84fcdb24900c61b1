"""Tests for the all-or-nothing user reset."""
import pytest

from src.db.models import PaperSession
from src.quiz.errors import InvalidInputError, RetryableIOError
from src.quiz.reset import ResetCoordinator
from src.quiz.session_manager import SessionManager


def test_reset_clears_all_31_sessions_and_keeps_results(service):
    completed = service.start_or_resume("alice", "Paper1")
    service.complete_session(completed.id, "done-1")
    for index in range(1, 32):
        snapshot = service.start_or_resume("alice", f"Paper{index}")
        service.submit_answer(snapshot.id, 1, "A", snapshot.version)
    service.start_or_resume("bob", "Paper7")

    report = service.reset_user("alice")

    assert report.sessions_cleared == 31
    assert sorted(report.papers) == sorted(f"Paper{i}" for i in range(1, 32))
    assert service.list_sessions("alice") == []
    assert len(service.list_sessions("bob")) == 1
    assert len(service.list_results("alice")) == 1


def test_start_after_reset_is_fresh(service):
    before = service.start_or_resume("alice", "Paper3")
    service.submit_answer(before.id, 4, "D", before.version)
    service.reset_user("alice")

    after = service.start_or_resume("alice", "Paper3")

    assert after.id != before.id
    assert after.current_question_index == 1
    assert after.selected_answers == {}


def test_reset_without_sessions(service):
    report = service.reset_user("nobody")

    assert report.sessions_cleared == 0
    assert report.papers == []


def test_reset_requires_user_id(service):
    with pytest.raises(InvalidInputError):
        service.reset_user("")


def test_leftover_sessions_abort_the_reset(db, monkeypatch):
    manager = SessionManager(db)
    for index in range(1, 4):
        manager.start_or_resume("alice", f"Paper{index}")
    db.commit()

    monkeypatch.setattr(db, "scalar", lambda *args, **kwargs: 1)
    with pytest.raises(RetryableIOError):
        ResetCoordinator(db).reset_all("alice")
    db.rollback()
    monkeypatch.undo()

    assert db.query(PaperSession).filter_by(user_id="alice").count() == 3


def test_failure_later_in_the_transaction_keeps_sessions(db):
    manager = SessionManager(db)
    for index in range(1, 4):
        manager.start_or_resume("alice", f"Paper{index}")
    db.commit()

    ResetCoordinator(db).reset_all("alice")
    db.rollback()

    assert db.query(PaperSession).filter_by(user_id="alice").count() == 3
