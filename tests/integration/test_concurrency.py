"""
Concurrency tests against a file-backed SQLite database.

Each test releases several threads at once through a barrier so that their
transactions overlap, then checks the store for lost or duplicated writes.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.db.database import make_session_factory, session_scope
from src.db.models import AttemptResult, LeaderboardRow, PaperSession
from src.quiz.catalog_loader import CatalogLoader
from src.quiz.errors import ConflictError, NotFoundError
from src.quiz.service import PracticeService
from src.quiz.session_manager import CompletionOutcome
from tests.factories import correct_option, make_paper_payload

THREADS = 4


@pytest.fixture
def file_factory(tmp_path):
    factory = make_session_factory(f"sqlite:///{tmp_path / 'practice.db'}", create_tables=True)
    with session_scope(factory) as db:
        loader = CatalogLoader(db, questions_per_paper=100)
        for index in range(1, 4):
            loader.import_paper(make_paper_payload(f"Paper{index}"))
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def file_service(file_factory, settings):
    return PracticeService(file_factory, settings=settings, sleep=lambda _: None)


def run_concurrently(*calls):
    """Start every call at the same moment; return each result or raised exception."""
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call()
        except Exception as exc:  # collected for assertions
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def _count(factory, model, **filters):
    with session_scope(factory) as db:
        return db.query(model).filter_by(**filters).count()


def test_stale_version_submits_exactly_one_wins(file_service):
    snapshot = file_service.start_or_resume("alice", "Paper1")

    outcomes = run_concurrently(
        *[
            (lambda n=n: file_service.submit_answer(snapshot.id, n, "A", snapshot.version))
            for n in range(1, THREADS + 1)
        ]
    )

    winners = [o for o in outcomes if not isinstance(o, Exception)]
    losers = [o for o in outcomes if isinstance(o, Exception)]
    assert len(winners) == 1
    assert all(isinstance(o, ConflictError) for o in losers)

    stored = file_service.get_session(snapshot.id)
    assert stored.version == snapshot.version + 1
    assert stored.selected_answers == winners[0].selected_answers
    assert len(stored.selected_answers) == 1


def test_same_key_completions_store_one_result(file_service, file_factory):
    snapshot = file_service.start_or_resume("alice", "Paper1")
    for number in (1, 2, 3):
        snapshot = file_service.submit_answer(
            snapshot.id, number, correct_option(number), snapshot.version
        )

    outcomes = run_concurrently(
        *[(lambda: file_service.complete_session(snapshot.id, "retry-key"))] * THREADS
    )

    assert all(isinstance(o, CompletionOutcome) for o in outcomes), outcomes
    assert len({o.result.id for o in outcomes}) == 1
    assert sum(1 for o in outcomes if not o.replayed) == 1
    assert outcomes[0].result.score == 3

    assert _count(file_factory, AttemptResult, idempotency_key="retry-key") == 1
    assert _count(file_factory, PaperSession, user_id="alice") == 0
    assert _count(file_factory, LeaderboardRow, result_id=outcomes[0].result.id) == 1


def test_reset_during_answers_leaves_no_sessions(file_service, file_factory):
    snapshots = [file_service.start_or_resume("alice", f"Paper{i}") for i in range(1, 4)]
    bystander = file_service.start_or_resume("bob", "Paper1")

    outcomes = run_concurrently(
        lambda: file_service.reset_user("alice"),
        *[
            (lambda s=s: file_service.submit_answer(s.id, 1, "B", s.version))
            for s in snapshots
        ],
    )

    report, answers = outcomes[0], outcomes[1:]
    assert report.sessions_cleared == 3
    for answer in answers:
        assert isinstance(answer, NotFoundError) or answer.selected_answers == {1: "B"}

    assert _count(file_factory, PaperSession, user_id="alice") == 0
    assert file_service.get_session(bystander.id).version == 1
