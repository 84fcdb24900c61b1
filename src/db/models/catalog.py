"""
Question catalog models.

Implements:
- Paper: a named, published set of exactly 100 questions
- Question: one multiple-choice item (four options, one correct letter)

Rows are written once by the catalog loader and only read afterwards.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Paper(Base):
    """A published practice paper."""

    __tablename__ = "papers"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str | None] = mapped_column(Text)
    published_at: Mapped[datetime] = mapped_column(default=func.now())

    questions: Mapped[list["Question"]] = relationship(
        back_populates="paper",
        order_by="Question.number",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Paper(name={self.name})>"


class Question(Base):
    """A single question of a paper; options are stored as four columns."""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paper_name: Mapped[str] = mapped_column(
        ForeignKey("papers.name", ondelete="CASCADE"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str] = mapped_column(Text, nullable=False)
    option_d: Mapped[str] = mapped_column(Text, nullable=False)
    correct_option: Mapped[str] = mapped_column(String(1), nullable=False)

    paper: Mapped[Paper] = relationship(back_populates="questions")

    __table_args__ = (
        UniqueConstraint("paper_name", "number", name="uq_question_paper_number"),
        CheckConstraint("number >= 1", name="ck_question_number_positive"),
        CheckConstraint("correct_option IN ('A', 'B', 'C', 'D')", name="ck_question_correct_option"),
    )

    def __repr__(self) -> str:
        return f"<Question(paper={self.paper_name}, number={self.number})>"

    @property
    def options(self) -> dict[str, str]:
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
        }
