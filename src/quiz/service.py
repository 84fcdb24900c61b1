"""
Practice service: the operations exposed to callers.

Each call runs in its own transaction (``session_scope``) inside the bounded
retry loop, so a transient store failure is retried silently before it is
surfaced as RetryableIOError. The leaderboard is refreshed in a second
transaction after a completion commits; if that refresh fails the result is
still durable and the board catches up on the next replay or rebuild.
"""
from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from src.db.database import SessionLocal, session_scope
from src.db.utils import utcnow
from src.quiz.catalog import CatalogIssue, PaperView, QuestionCatalog, QuestionView
from src.quiz.errors import RetryableIOError
from src.quiz.leaderboard import LeaderboardAggregator, LeaderboardEntry
from src.quiz.reset import ResetCoordinator, ResetReport
from src.quiz.result_store import ResultRecord, ResultStore
from src.quiz.retry import run_with_retry
from src.quiz.session_manager import CompletionOutcome, SessionManager, SessionSnapshot

T = TypeVar("T")


class PracticeService:
    """Facade over the catalog, session, result, leaderboard and reset components."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory or SessionLocal
        self.settings = settings or get_settings()
        self.clock = clock
        self.sleep = sleep

    # ========================================
    # Session lifecycle
    # ========================================

    def start_or_resume(
        self, user_id: str, paper_name: str, display_name: str | None = None
    ) -> SessionSnapshot:
        return self._run(
            "start_or_resume",
            lambda db: self._sessions(db).start_or_resume(user_id, paper_name, display_name),
        )

    def get_session(self, session_id: str) -> SessionSnapshot:
        return self._run("get_session", lambda db: self._sessions(db).get(session_id))

    def list_sessions(self, user_id: str) -> list[SessionSnapshot]:
        return self._run("list_sessions", lambda db: self._sessions(db).list_for_user(user_id))

    def submit_answer(
        self, session_id: str, question_no: int, option: str, expected_version: int
    ) -> SessionSnapshot:
        return self._run(
            "submit_answer",
            lambda db: self._sessions(db).record_answer(
                session_id, question_no, option, expected_version
            ),
        )

    def navigate(self, session_id: str, direction: int | str) -> SessionSnapshot:
        return self._run("navigate", lambda db: self._sessions(db).navigate(session_id, direction))

    def complete_session(self, session_id: str, idempotency_key: str) -> CompletionOutcome:
        outcome = self._run(
            "complete_session",
            lambda db: self._sessions(db).complete(session_id, idempotency_key),
        )
        self._refresh_leaderboard(outcome.result)
        return outcome

    # ========================================
    # Results & leaderboard
    # ========================================

    def get_leaderboard(self) -> list[LeaderboardEntry]:
        return self._run("get_leaderboard", lambda db: self._leaderboard(db).entries())

    def rebuild_leaderboard(self) -> list[LeaderboardEntry]:
        return self._run("rebuild_leaderboard", lambda db: self._leaderboard(db).rebuild())

    def list_results(
        self, user_id: str, paper_name: str | None = None, limit: int = 100
    ) -> list[ResultRecord]:
        return self._run(
            "list_results", lambda db: ResultStore(db).list_for_user(user_id, paper_name, limit)
        )

    def best_score(self, user_id: str, paper_name: str) -> int | None:
        def _best(db: Session) -> int | None:
            name = self._catalog(db).require_paper(paper_name)
            return ResultStore(db).best_score(user_id, name)

        return self._run("best_score", _best)

    # ========================================
    # Reset
    # ========================================

    def reset_user(self, user_id: str) -> ResetReport:
        return self._run("reset_user", lambda db: ResetCoordinator(db).reset_all(user_id))

    # ========================================
    # Catalog
    # ========================================

    def list_papers(self) -> list[dict]:
        return self._run("list_papers", lambda db: self._catalog(db).list_papers())

    def get_paper(self, paper_name: str) -> PaperView:
        return self._run("get_paper", lambda db: self._catalog(db).fetch_paper(paper_name))

    def get_question(self, paper_name: str, question_no: int) -> QuestionView:
        return self._run(
            "get_question", lambda db: self._catalog(db).fetch_question(paper_name, question_no)
        )

    def verify_catalog(self) -> list[CatalogIssue]:
        return self._run("verify_catalog", lambda db: self._catalog(db).verify())

    # ========================================
    # Internals
    # ========================================

    def _run(self, description: str, work: Callable[[Session], T]) -> T:
        def attempt() -> T:
            with session_scope(self.session_factory) as db:
                return work(db)

        return run_with_retry(
            attempt,
            attempts=self.settings.store_retry_attempts,
            initial_delay=self.settings.store_retry_backoff_seconds,
            description=description,
            sleep=self.sleep,
        )

    def _refresh_leaderboard(self, result: ResultRecord) -> None:
        """Offer a committed result to the board; failures never undo the completion."""
        try:
            self._run("leaderboard_refresh", lambda db: self._leaderboard(db).record(result))
        except RetryableIOError as exc:
            logger.warning(
                "Leaderboard refresh for result {} deferred: {}", result.id, exc.message
            )
        except SQLAlchemyError as exc:
            logger.error("Leaderboard refresh for result {} deferred: {}", result.id, exc)

    def _catalog(self, db: Session) -> QuestionCatalog:
        return QuestionCatalog(db, self.settings.questions_per_paper)

    def _sessions(self, db: Session) -> SessionManager:
        return SessionManager(
            db,
            catalog=self._catalog(db),
            results=ResultStore(db),
            clock=self.clock,
            navigate_max_attempts=self.settings.navigate_max_attempts,
        )

    def _leaderboard(self, db: Session) -> LeaderboardAggregator:
        return LeaderboardAggregator(db, self.settings.leaderboard_size)
