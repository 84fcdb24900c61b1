"""
Question Catalog accessor.

Read-only lookups over published papers. Every paper must hold exactly
``questions_per_paper`` questions numbered 1..N with no gaps; a paper that
breaks this is a catalog inconsistency and surfaces as FatalError rather
than being silently scored against a partial answer key.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import get_settings
from src.db.models import Paper, Question
from src.quiz.errors import FatalError, InvalidInputError, NotFoundError

OPTIONS: tuple[str, ...] = ("A", "B", "C", "D")


@dataclass(frozen=True)
class QuestionView:
    """Immutable copy of a published question."""

    number: int
    text: str
    options: dict[str, str]
    correct_option: str

    def public(self) -> dict:
        """Question as shown to a candidate (answer key removed)."""
        return {"number": self.number, "text": self.text, "options": dict(self.options)}


@dataclass(frozen=True)
class PaperView:
    """A paper with its ordered questions."""

    name: str
    title: str | None
    questions: tuple[QuestionView, ...] = field(default_factory=tuple)

    @property
    def answer_key(self) -> dict[int, str]:
        return {q.number: q.correct_option for q in self.questions}


@dataclass
class CatalogIssue:
    """A paper that violates the fixed-size invariant."""

    paper_name: str
    question_count: int
    missing_numbers: list[int]
    unexpected_numbers: list[int]


def validate_paper_name(paper_name: object) -> str:
    if not isinstance(paper_name, str) or not paper_name.strip():
        raise InvalidInputError("Paper name must be a non-empty string", paper_name=paper_name)
    return paper_name.strip()


class QuestionCatalog:
    """Lookup of papers and questions backed by the catalog tables."""

    def __init__(self, session: Session, questions_per_paper: int | None = None):
        self.session = session
        self.questions_per_paper = questions_per_paper or get_settings().questions_per_paper

    def validate_question_number(self, question_no: object) -> int:
        if (
            isinstance(question_no, bool)
            or not isinstance(question_no, int)
            or not 1 <= question_no <= self.questions_per_paper
        ):
            raise InvalidInputError(
                f"Question number must be an integer in 1..{self.questions_per_paper}",
                question_no=question_no,
            )
        return question_no

    def has_paper(self, paper_name: str) -> bool:
        name = validate_paper_name(paper_name)
        return self.session.get(Paper, name) is not None

    def require_paper(self, paper_name: str) -> str:
        """Return the normalized paper name or raise NotFoundError."""
        name = validate_paper_name(paper_name)
        if self.session.get(Paper, name) is None:
            raise NotFoundError(f"Unknown paper: {name}", paper_name=name)
        return name

    def fetch_paper(self, paper_name: str) -> PaperView:
        """Return the paper with its questions ordered by number."""
        name = self.require_paper(paper_name)
        rows = self.session.scalars(
            select(Question).where(Question.paper_name == name).order_by(Question.number)
        ).all()

        numbers = [row.number for row in rows]
        if numbers != list(range(1, self.questions_per_paper + 1)):
            logger.error(
                "Paper {} is inconsistent: {} questions, expected 1..{}",
                name,
                len(numbers),
                self.questions_per_paper,
            )
            raise FatalError(
                f"Paper {name} does not hold questions 1..{self.questions_per_paper}",
                paper_name=name,
                question_count=len(numbers),
            )

        paper = self.session.get(Paper, name)
        return PaperView(
            name=name,
            title=paper.title if paper else None,
            questions=tuple(self._to_view(row) for row in rows),
        )

    def fetch_question(self, paper_name: str, question_no: int) -> QuestionView:
        number = self.validate_question_number(question_no)
        name = self.require_paper(paper_name)
        row = self.session.scalars(
            select(Question).where(Question.paper_name == name, Question.number == number)
        ).one_or_none()
        if row is None:
            raise FatalError(
                f"Paper {name} is missing question {number}",
                paper_name=name,
                question_no=number,
            )
        return self._to_view(row)

    def answer_key(self, paper_name: str) -> dict[int, str]:
        return self.fetch_paper(paper_name).answer_key

    def list_papers(self) -> list[dict]:
        """Paper names with their question counts, ordered by name."""
        rows = self.session.execute(
            select(Paper.name, Paper.title, func.count(Question.id))
            .outerjoin(Question, Question.paper_name == Paper.name)
            .group_by(Paper.name, Paper.title)
            .order_by(Paper.name)
        ).all()
        return [
            {"name": name, "title": title, "question_count": count}
            for name, title, count in rows
        ]

    def verify(self) -> list[CatalogIssue]:
        """Report every paper that does not hold exactly questions 1..N."""
        expected = set(range(1, self.questions_per_paper + 1))
        issues: list[CatalogIssue] = []

        for paper_name in self.session.scalars(select(Paper.name).order_by(Paper.name)):
            numbers = list(
                self.session.scalars(
                    select(Question.number).where(Question.paper_name == paper_name)
                )
            )
            present = set(numbers)
            if present == expected and len(numbers) == len(expected):
                continue
            issues.append(
                CatalogIssue(
                    paper_name=paper_name,
                    question_count=len(numbers),
                    missing_numbers=sorted(expected - present),
                    unexpected_numbers=sorted(present - expected),
                )
            )

        if issues:
            logger.warning("Catalog verification found {} inconsistent papers", len(issues))
        return issues

    @staticmethod
    def _to_view(row: Question) -> QuestionView:
        return QuestionView(
            number=row.number,
            text=row.text,
            options=row.options,
            correct_option=row.correct_option,
        )
