"""
Attempt tracking models.

SQLAlchemy models for a learner's work on a paper:
- PaperSession: in-progress attempt, one per (user, paper), versioned
- AttemptResult: immutable record of a completed attempt
- LeaderboardRow: materialized global top-N view over AttemptResult
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PaperSession(Base):
    """
    A learner's resumable attempt at one paper.

    selected_answers maps the question number (as a string key, JSON objects
    only allow string keys) to the chosen option letter. Every write bumps
    ``version``; writers must present the version they last read.
    """

    __tablename__ = "paper_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    paper_name: Mapped[str] = mapped_column(
        ForeignKey("papers.name", ondelete="RESTRICT"), nullable=False
    )
    display_name: Mapped[str | None] = mapped_column(Text)

    current_question_index: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    selected_answers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    last_updated: Mapped[datetime] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_id", "paper_name", name="uq_session_user_paper"),
        CheckConstraint("current_question_index >= 1", name="ck_session_index_min"),
    )

    def __repr__(self) -> str:
        return (
            f"<PaperSession user={self.user_id} paper={self.paper_name} "
            f"index={self.current_question_index} v{self.version}>"
        )


class AttemptResult(Base):
    """
    A completed attempt. Written once per idempotency key and never updated.
    """

    __tablename__ = "attempt_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False)

    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text)
    paper_name: Mapped[str] = mapped_column(
        ForeignKey("papers.name", ondelete="RESTRICT"), nullable=False
    )

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    wrong_answers: Mapped[int] = mapped_column(Integer, nullable=False)

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime] = mapped_column(nullable=False)
    time_taken_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_results_user_paper", "user_id", "paper_name"),
        Index("idx_results_rank", "score", "completed_at"),
        CheckConstraint("score = correct_answers", name="ck_result_score"),
    )

    def __repr__(self) -> str:
        return f"<AttemptResult user={self.user_id} paper={self.paper_name} score={self.score}>"


class LeaderboardRow(Base):
    """
    One slot of the global leaderboard.

    Rows reference the result they were derived from; deleting a result
    cascades here so the board can never show an attempt that is gone.
    """

    __tablename__ = "leaderboard_entries"

    result_id: Mapped[str] = mapped_column(
        ForeignKey("attempt_results.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    paper_name: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (Index("idx_leaderboard_rank", "score", "completed_at"),)

    def __repr__(self) -> str:
        return f"<LeaderboardRow user={self.user_id} score={self.score}>"
