"""
Session Manager.

Per-(user, paper) progress state machine:

    NotStarted --start_or_resume--> InProgress --complete--> Completed

An in-progress attempt is a PaperSession row; completion converts it into an
AttemptResult and deletes the row in the same transaction. Every mutation is
a conditional write on the row's version, so concurrent writers never lose
updates silently: the loser gets ConflictError and must re-read.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import get_settings
from src.db.models import PaperSession
from src.db.utils import new_id, utcnow
from src.quiz.catalog import OPTIONS, QuestionCatalog
from src.quiz.errors import (
    ConflictError,
    DuplicateSubmission,
    InvalidInputError,
    NotFoundError,
    RetryableIOError,
)
from src.quiz.result_store import ResultDraft, ResultRecord, ResultStore, validate_idempotency_key
from src.quiz.scoring import score_answers

DIRECTIONS: dict[Any, int] = {
    1: 1,
    -1: -1,
    "next": 1,
    "forward": 1,
    "previous": -1,
    "prev": -1,
    "back": -1,
}


@dataclass(frozen=True)
class SessionSnapshot:
    """Detached copy of an in-progress session."""

    id: str
    user_id: str
    paper_name: str
    display_name: str | None
    current_question_index: int
    selected_answers: dict[int, str] = field(default_factory=dict)
    started_at: datetime | None = None
    last_updated: datetime | None = None
    version: int = 1
    status: str = "in_progress"

    @property
    def answered_count(self) -> int:
        return len(self.selected_answers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "paper_name": self.paper_name,
            "display_name": self.display_name,
            "current_question_index": self.current_question_index,
            "selected_answers": dict(self.selected_answers),
            "started_at": self.started_at,
            "last_updated": self.last_updated,
            "version": self.version,
            "status": self.status,
        }


@dataclass(frozen=True)
class CompletionOutcome:
    """Result of complete(); ``replayed`` is True when the key was already used."""

    result: ResultRecord
    replayed: bool = False


def validate_user_id(user_id: object) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidInputError("User id must be a non-empty string", user_id=user_id)
    return user_id


def validate_option(option: object) -> str:
    if option not in OPTIONS:
        raise InvalidInputError(
            f"Option must be one of {', '.join(OPTIONS)}", option=option
        )
    return option


def validate_version(expected_version: object) -> int:
    if (
        isinstance(expected_version, bool)
        or not isinstance(expected_version, int)
        or expected_version < 1
    ):
        raise InvalidInputError(
            "Expected version must be a positive integer", expected_version=expected_version
        )
    return expected_version


class SessionManager:
    """
    Manages PaperSession rows.

    Handles:
    - Idempotent start/resume per (user, paper)
    - Versioned answer recording
    - Clamped navigation
    - Exactly-once completion per idempotency key
    """

    def __init__(
        self,
        session: Session,
        catalog: QuestionCatalog | None = None,
        results: ResultStore | None = None,
        clock: Callable[[], datetime] = utcnow,
        navigate_max_attempts: int | None = None,
    ):
        self.session = session
        self.catalog = catalog or QuestionCatalog(session)
        self.results = results or ResultStore(session)
        self.clock = clock
        self.navigate_max_attempts = navigate_max_attempts or get_settings().navigate_max_attempts

    # ========================================
    # Reads
    # ========================================

    def get(self, session_id: str) -> SessionSnapshot:
        return self._snapshot(self._load(session_id))

    def find(self, user_id: str, paper_name: str) -> SessionSnapshot | None:
        row = self._find_row(user_id, paper_name)
        return self._snapshot(row) if row else None

    def list_for_user(self, user_id: str) -> list[SessionSnapshot]:
        """All of a user's in-progress sessions, most recently touched first."""
        validate_user_id(user_id)
        rows = self.session.scalars(
            select(PaperSession)
            .where(PaperSession.user_id == user_id)
            .order_by(PaperSession.last_updated.desc(), PaperSession.paper_name)
        )
        return [self._snapshot(row) for row in rows]

    # ========================================
    # Mutations
    # ========================================

    def start_or_resume(
        self, user_id: str, paper_name: str, display_name: str | None = None
    ) -> SessionSnapshot:
        """Return the user's session for the paper, creating it on first use."""
        user_id = validate_user_id(user_id)
        paper_name = self.catalog.require_paper(paper_name)

        existing = self._find_row(user_id, paper_name)
        if existing is not None:
            logger.debug("Resuming session {} for {} on {}", existing.id, user_id, paper_name)
            return self._snapshot(existing)

        now = self.clock()
        row = PaperSession(
            id=new_id(),
            user_id=user_id,
            paper_name=paper_name,
            display_name=display_name,
            current_question_index=1,
            selected_answers={},
            started_at=now,
            last_updated=now,
            version=1,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Another device created it first; the retry resumes that one.
            raise RetryableIOError(
                "Concurrent session creation", user_id=user_id, paper_name=paper_name
            ) from exc

        logger.info("Started session {} for {} on {}", row.id, user_id, paper_name)
        return self._snapshot(row)

    def record_answer(
        self, session_id: str, question_no: int, option: str, expected_version: int
    ) -> SessionSnapshot:
        """Write one answer; does not move the current index."""
        question_no = self.catalog.validate_question_number(question_no)
        option = validate_option(option)
        expected_version = validate_version(expected_version)

        row = self._load(session_id)
        if row.version != expected_version:
            raise ConflictError.stale_version(session_id, expected_version, row.version)

        answers = dict(row.selected_answers or {})
        answers[str(question_no)] = option
        self._conditional_update(
            row,
            expected_version,
            selected_answers=answers,
        )
        logger.debug(
            "Session {} answered Q{}={} (v{})", session_id, question_no, option, expected_version + 1
        )
        return self.get(session_id)

    def navigate(self, session_id: str, direction: int | str) -> SessionSnapshot:
        """
        Move the current index one step, clamped to the paper bounds.

        Version conflicts are retried internally; if every attempt loses, the
        latest stored session is returned unmoved.
        """
        step = DIRECTIONS.get(direction.lower() if isinstance(direction, str) else direction)
        if step is None or isinstance(direction, bool):
            raise InvalidInputError("Direction must be +1/-1, 'next' or 'previous'", direction=direction)

        last = self.catalog.questions_per_paper
        for attempt in range(1, self.navigate_max_attempts + 1):
            row = self._load(session_id)
            target = min(max(row.current_question_index + step, 1), last)
            if target == row.current_question_index:
                return self._snapshot(row)
            try:
                self._conditional_update(row, row.version, current_question_index=target)
            except ConflictError:
                logger.debug("Navigate on {} raced (attempt {})", session_id, attempt)
                continue
            return self.get(session_id)

        logger.warning(
            "Navigate on {} gave up after {} conflicting attempts",
            session_id,
            self.navigate_max_attempts,
        )
        return self.get(session_id)

    def complete(self, session_id: str, idempotency_key: str) -> CompletionOutcome:
        """
        Score the session and convert it into a Result.

        Repeating the call with the same key returns the stored Result without
        rescoring, even after the session row has been deleted.
        """
        key = validate_idempotency_key(idempotency_key)

        replay = self._replay(session_id, key)
        if replay is not None:
            return replay

        try:
            row = self._load(session_id)
        except NotFoundError:
            # A concurrent completion with the same key may have just committed.
            replay = self._replay(session_id, key)
            if replay is None:
                raise
            return replay
        completed_at = self.clock()
        card = score_answers(
            {int(number): option for number, option in (row.selected_answers or {}).items()},
            self.catalog.answer_key(row.paper_name),
            row.started_at,
            completed_at,
        )
        draft = ResultDraft(
            session_id=row.id,
            user_id=row.user_id,
            display_name=row.display_name,
            paper_name=row.paper_name,
            score=card.score,
            correct_answers=card.correct_answers,
            wrong_answers=card.wrong_answers,
            started_at=row.started_at,
            completed_at=completed_at,
            time_taken_minutes=card.time_taken_minutes,
        )
        try:
            record = self.results.create(draft, key)
        except DuplicateSubmission as dup:
            return CompletionOutcome(result=dup.result, replayed=True)

        deleted = self.session.execute(
            delete(PaperSession)
            .where(PaperSession.id == row.id, PaperSession.version == row.version)
            .execution_options(synchronize_session=False)
        ).rowcount
        if deleted != 1:
            current = self.session.get(PaperSession, row.id, populate_existing=True)
            raise ConflictError.stale_version(
                row.id, row.version, current.version if current else row.version
            )
        self.session.expunge(row)

        logger.info(
            "Completed session {} for {} on {}: {}/{} in {} min",
            row.id,
            row.user_id,
            row.paper_name,
            card.correct_answers,
            card.total,
            card.time_taken_minutes,
        )
        return CompletionOutcome(result=record, replayed=False)

    # ========================================
    # Internals
    # ========================================

    def _replay(self, session_id: str, key: str) -> CompletionOutcome | None:
        prior = self.results.get_by_key(key)
        if prior is None:
            return None
        if prior.session_id != session_id:
            raise ConflictError(
                "Idempotency key already used for a different attempt",
                idempotency_key=key,
                session_id=session_id,
            )
        logger.info("Completion of {} replayed for key {}", session_id, key)
        return CompletionOutcome(result=prior, replayed=True)

    def _load(self, session_id: str) -> PaperSession:
        if not isinstance(session_id, str) or not session_id:
            raise InvalidInputError("Session id must be a non-empty string", session_id=session_id)
        row = self.session.get(PaperSession, session_id, populate_existing=True)
        if row is None:
            raise NotFoundError(f"Unknown session: {session_id}", session_id=session_id)
        return row

    def _find_row(self, user_id: str, paper_name: str) -> PaperSession | None:
        return self.session.scalars(
            select(PaperSession).where(
                PaperSession.user_id == user_id, PaperSession.paper_name == paper_name
            )
        ).one_or_none()

    def _conditional_update(self, row: PaperSession, expected_version: int, **values: Any) -> None:
        """UPDATE ... WHERE version = expected; ConflictError when no row matched."""
        result = self.session.execute(
            update(PaperSession)
            .where(PaperSession.id == row.id, PaperSession.version == expected_version)
            .values(version=expected_version + 1, last_updated=self.clock(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.session.get(PaperSession, row.id, populate_existing=True)
            if current is None:
                raise NotFoundError(f"Unknown session: {row.id}", session_id=row.id)
            logger.warning(
                "Version conflict on session {}: expected v{}, found v{}",
                row.id,
                expected_version,
                current.version,
            )
            raise ConflictError.stale_version(row.id, expected_version, current.version)

    @staticmethod
    def _snapshot(row: PaperSession) -> SessionSnapshot:
        return SessionSnapshot(
            id=row.id,
            user_id=row.user_id,
            paper_name=row.paper_name,
            display_name=row.display_name,
            current_question_index=row.current_question_index,
            selected_answers={
                int(number): option for number, option in (row.selected_answers or {}).items()
            },
            started_at=row.started_at,
            last_updated=row.last_updated,
            version=row.version,
        )
