"""
Result Store.

Append-only record of completed attempts with duplicate suppression keyed on
the caller's idempotency token. Results are never updated; retakes add new
rows.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.db.models import AttemptResult
from src.db.utils import new_id
from src.quiz.errors import ConflictError, DuplicateSubmission, InvalidInputError, RetryableIOError


@dataclass(frozen=True)
class ResultRecord:
    """Immutable view of a stored result."""

    id: str
    idempotency_key: str
    session_id: str
    user_id: str
    display_name: str | None
    paper_name: str
    score: int
    correct_answers: int
    wrong_answers: int
    started_at: datetime
    completed_at: datetime
    time_taken_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResultDraft:
    """A scored attempt that has not been stored yet."""

    session_id: str
    user_id: str
    display_name: str | None
    paper_name: str
    score: int
    correct_answers: int
    wrong_answers: int
    started_at: datetime
    completed_at: datetime
    time_taken_minutes: int


def validate_idempotency_key(key: object) -> str:
    if not isinstance(key, str) or not key.strip() or len(key) > 128:
        raise InvalidInputError(
            "Idempotency key must be a non-empty string of at most 128 characters",
            idempotency_key=key,
        )
    return key


class ResultStore:
    """Durable store of AttemptResult rows."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, result_id: str) -> ResultRecord | None:
        row = self.session.get(AttemptResult, result_id)
        return self._to_record(row) if row else None

    def get_by_key(self, idempotency_key: str) -> ResultRecord | None:
        row = self.session.scalars(
            select(AttemptResult).where(AttemptResult.idempotency_key == idempotency_key)
        ).one_or_none()
        return self._to_record(row) if row else None

    def create(self, draft: ResultDraft, idempotency_key: str) -> ResultRecord:
        """
        Store a result under the idempotency key.

        Raises:
            DuplicateSubmission: the key already produced a result for this session
            ConflictError: the key is already bound to a different session
            RetryableIOError: a concurrent writer inserted the same key first
        """
        key = validate_idempotency_key(idempotency_key)

        prior = self.get_by_key(key)
        if prior is not None:
            if prior.session_id != draft.session_id:
                raise ConflictError(
                    "Idempotency key already used for a different attempt",
                    idempotency_key=key,
                    session_id=draft.session_id,
                )
            raise DuplicateSubmission(key, prior)

        row = AttemptResult(id=new_id(), idempotency_key=key, **asdict(draft))
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost the insert race; the retry will find the winner's row.
            raise RetryableIOError(
                "Concurrent completion with the same idempotency key",
                idempotency_key=key,
            ) from exc

        logger.info(
            "Stored result {} for user {} on {}: score {}",
            row.id,
            row.user_id,
            row.paper_name,
            row.score,
        )
        return self._to_record(row)

    def best_score(self, user_id: str, paper_name: str) -> int | None:
        """Highest score across all of a user's attempts at a paper."""
        return self.session.scalar(
            select(func.max(AttemptResult.score)).where(
                AttemptResult.user_id == user_id,
                AttemptResult.paper_name == paper_name,
            )
        )

    def list_for_user(
        self, user_id: str, paper_name: str | None = None, limit: int = 100
    ) -> list[ResultRecord]:
        """A user's results, most recent first."""
        query = select(AttemptResult).where(AttemptResult.user_id == user_id)
        if paper_name:
            query = query.where(AttemptResult.paper_name == paper_name)
        query = query.order_by(AttemptResult.completed_at.desc(), AttemptResult.id).limit(limit)
        return [self._to_record(row) for row in self.session.scalars(query)]

    def count_for_user(self, user_id: str) -> int:
        return self.session.scalar(
            select(func.count()).select_from(AttemptResult).where(AttemptResult.user_id == user_id)
        ) or 0

    def top(self, limit: int) -> list[ResultRecord]:
        """Results ranked by score descending, earlier completion first on ties."""
        query = (
            select(AttemptResult)
            .order_by(
                AttemptResult.score.desc(),
                AttemptResult.completed_at.asc(),
                AttemptResult.id.asc(),
            )
            .limit(limit)
        )
        return [self._to_record(row) for row in self.session.scalars(query)]

    @staticmethod
    def _to_record(row: AttemptResult) -> ResultRecord:
        return ResultRecord(
            id=row.id,
            idempotency_key=row.idempotency_key,
            session_id=row.session_id,
            user_id=row.user_id,
            display_name=row.display_name,
            paper_name=row.paper_name,
            score=row.score,
            correct_answers=row.correct_answers,
            wrong_answers=row.wrong_answers,
            started_at=row.started_at,
            completed_at=row.completed_at,
            time_taken_minutes=row.time_taken_minutes,
        )
