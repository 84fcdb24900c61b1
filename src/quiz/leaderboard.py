"""
Leaderboard Aggregator.

Materialized global top-N over all results, across every paper. Ordering is
score descending, then earlier completion first; a newcomer that exactly
ties the last entry on both does not displace it.

The board is a derived view: it is refreshed after each stored result and
can always be rebuilt from the Result Store. Rows reference their result by
foreign key, so a board row cannot outlive the result it came from.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import get_settings
from src.db.models import AttemptResult, LeaderboardRow
from src.quiz.errors import RetryableIOError
from src.quiz.result_store import ResultRecord, ResultStore


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked leaderboard position."""

    rank: int
    user_id: str
    display_name: str
    score: int
    paper_name: str
    completed_at: datetime
    result_id: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LeaderboardAggregator:
    """Maintains the leaderboard_entries table."""

    def __init__(self, session: Session, size: int | None = None):
        self.session = session
        self.size = size or get_settings().leaderboard_size

    def entries(self) -> list[LeaderboardEntry]:
        """Current board, best first, never more than ``size`` entries."""
        rows = self.session.execute(
            select(
                LeaderboardRow.user_id,
                LeaderboardRow.display_name,
                LeaderboardRow.score,
                LeaderboardRow.paper_name,
                LeaderboardRow.completed_at,
                LeaderboardRow.result_id,
            )
            .join(AttemptResult, AttemptResult.id == LeaderboardRow.result_id)
            .order_by(
                LeaderboardRow.score.desc(),
                LeaderboardRow.completed_at.asc(),
                LeaderboardRow.result_id.asc(),
            )
            .limit(self.size)
        ).all()
        return [
            LeaderboardEntry(
                rank=position,
                user_id=row.user_id,
                display_name=row.display_name,
                score=row.score,
                paper_name=row.paper_name,
                completed_at=row.completed_at,
                result_id=row.result_id,
            )
            for position, row in enumerate(rows, start=1)
        ]

    def qualifies(self, result: ResultRecord, board: list[LeaderboardEntry] | None = None) -> bool:
        """True when the result would earn a place on the current board."""
        board = self.entries() if board is None else board
        if len(board) < self.size:
            return True
        last = board[-1]
        return result.score > last.score or (
            result.score == last.score and result.completed_at < last.completed_at
        )

    def record(self, result: ResultRecord) -> bool:
        """
        Offer a newly stored result to the board.

        Returns:
            True if the result was placed on the board

        Raises:
            RetryableIOError: another transaction placed the same result first
        """
        if self.session.get(AttemptResult, result.id) is None:
            logger.warning("Result {} is not stored; not ranking it", result.id)
            return False
        if self.session.get(LeaderboardRow, result.id) is not None:
            return False

        board = self.entries()
        if not self.qualifies(result, board):
            return False

        self.session.add(
            LeaderboardRow(
                result_id=result.id,
                user_id=result.user_id,
                display_name=result.display_name or result.user_id,
                paper_name=result.paper_name,
                score=result.score,
                completed_at=result.completed_at,
            )
        )
        try:
            self.session.flush()
        except IntegrityError as exc:
            # A concurrent refresh placed it first; the retry sees its row.
            raise RetryableIOError(
                "Concurrent leaderboard placement", result_id=result.id
            ) from exc
        evicted = self._trim()
        logger.info(
            "Leaderboard: {} placed with {} on {} ({} evicted)",
            result.user_id,
            result.score,
            result.paper_name,
            evicted,
        )
        return True

    def rebuild(self, results: ResultStore | None = None) -> list[LeaderboardEntry]:
        """Recompute the board from the Result Store."""
        results = results or ResultStore(self.session)
        self.session.execute(delete(LeaderboardRow))
        for record in results.top(self.size):
            self.session.add(
                LeaderboardRow(
                    result_id=record.id,
                    user_id=record.user_id,
                    display_name=record.display_name or record.user_id,
                    paper_name=record.paper_name,
                    score=record.score,
                    completed_at=record.completed_at,
                )
            )
        self.session.flush()
        board = self.entries()
        logger.info("Leaderboard rebuilt with {} entries", len(board))
        return board

    def _trim(self) -> int:
        """Delete rows ranked beyond ``size``; returns how many were removed."""
        overflow = self.session.scalars(
            select(LeaderboardRow.result_id)
            .order_by(
                LeaderboardRow.score.desc(),
                LeaderboardRow.completed_at.asc(),
                LeaderboardRow.result_id.asc(),
            )
            .offset(self.size)
        ).all()
        if overflow:
            self.session.execute(
                delete(LeaderboardRow).where(LeaderboardRow.result_id.in_(overflow))
            )
        return len(overflow)
