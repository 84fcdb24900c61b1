"""Tests for the append-only result store."""
from datetime import datetime, timedelta

import pytest

from src.quiz.errors import ConflictError, DuplicateSubmission, InvalidInputError
from src.quiz.result_store import ResultStore
from tests.factories import make_result_draft

T0 = datetime(2026, 1, 5, 10, 0, 0)


@pytest.fixture
def store(db):
    return ResultStore(db)


def test_create_and_lookup_by_key(store):
    record = store.create(make_result_draft("alice", 42, T0), "key-1")

    assert store.get(record.id) == record
    assert store.get_by_key("key-1") == record
    assert record.score == record.correct_answers == 42
    assert record.wrong_answers == 58


def test_duplicate_key_same_session_returns_prior(store):
    draft = make_result_draft("alice", 42, T0)
    first = store.create(draft, "key-1")

    with pytest.raises(DuplicateSubmission) as exc_info:
        store.create(draft, "key-1")

    assert exc_info.value.result == first
    assert store.count_for_user("alice") == 1


def test_duplicate_key_other_session_conflicts(store):
    store.create(make_result_draft("alice", 42, T0, session_id="s-1"), "key-1")

    with pytest.raises(ConflictError):
        store.create(make_result_draft("alice", 10, T0, session_id="s-2"), "key-1")


@pytest.mark.parametrize("key", ["", "  ", None, "k" * 129])
def test_invalid_key(store, key):
    with pytest.raises(InvalidInputError):
        store.create(make_result_draft("alice", 1, T0), key)


def test_retakes_append_and_best_score(store):
    store.create(make_result_draft("alice", 40, T0, paper_name="Paper3"), "k1")
    store.create(make_result_draft("alice", 75, T0 + timedelta(days=1), paper_name="Paper3"), "k2")
    store.create(make_result_draft("alice", 60, T0 + timedelta(days=2), paper_name="Paper3"), "k3")

    assert store.best_score("alice", "Paper3") == 75
    assert store.best_score("alice", "Paper4") is None
    assert store.count_for_user("alice") == 3


def test_list_for_user_most_recent_first(store):
    store.create(make_result_draft("alice", 10, T0, paper_name="Paper1"), "k1")
    store.create(make_result_draft("alice", 20, T0 + timedelta(hours=1), paper_name="Paper2"), "k2")
    store.create(make_result_draft("bob", 30, T0, paper_name="Paper1"), "k3")

    results = store.list_for_user("alice")
    assert [r.score for r in results] == [20, 10]
    assert [r.score for r in store.list_for_user("alice", paper_name="Paper1")] == [10]
    assert len(store.list_for_user("alice", limit=1)) == 1


def test_top_orders_by_score_then_earlier_completion(store):
    store.create(make_result_draft("late", 80, T0 + timedelta(minutes=5)), "k1")
    store.create(make_result_draft("early", 80, T0), "k2")
    store.create(make_result_draft("best", 90, T0 + timedelta(days=1)), "k3")

    assert [r.user_id for r in store.top(3)] == ["best", "early", "late"]
    assert len(store.top(2)) == 2
