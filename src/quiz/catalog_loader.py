"""
Catalog loader for publishing papers from JSON seed files.

File format (one paper per file):

    {
        "paper": "Paper7",
        "title": "Practice Paper 7",
        "questions": [
            {"number": 1, "text": "...", "options": {"A": "...", "B": "...", "C": "...", "D": "..."},
             "correct": "B"},
            ...
        ]
    }

Published questions are immutable: re-importing a paper with identical
content is a no-op, re-importing it with different content is refused.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from src.db.models import Paper, Question
from src.quiz.catalog import OPTIONS
from src.quiz.errors import FatalError


def _error_list(exc: ValidationError) -> list[dict]:
    return exc.errors(include_url=False, include_context=False)


class QuestionPayload(BaseModel):
    """One question as it appears in a seed file."""

    number: int = Field(..., ge=1)
    text: str = Field(..., min_length=1)
    options: dict[str, str]
    correct: str

    @field_validator("options")
    @classmethod
    def _four_options(cls, value: dict[str, str]) -> dict[str, str]:
        if sorted(value) != list(OPTIONS):
            raise ValueError(f"options must have exactly the keys {', '.join(OPTIONS)}")
        if any(not text.strip() for text in value.values()):
            raise ValueError("option text must not be empty")
        return value

    @field_validator("correct")
    @classmethod
    def _correct_letter(cls, value: str) -> str:
        letter = value.strip().upper()
        if letter not in OPTIONS:
            raise ValueError(f"correct must be one of {', '.join(OPTIONS)}")
        return letter


class PaperPayload(BaseModel):
    """A whole paper as it appears in a seed file."""

    paper: str = Field(..., min_length=1, max_length=64)
    title: str | None = None
    questions: list[QuestionPayload]


@dataclass
class ImportSummary:
    """Outcome of a catalog import run."""

    created: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.unchanged)


class CatalogLoader:
    """Publish papers into the catalog tables."""

    def __init__(self, session: Session, questions_per_paper: int | None = None):
        self.session = session
        self.questions_per_paper = questions_per_paper or get_settings().questions_per_paper

    def load_directory(self, directory: Path | str, pattern: str = "*.json") -> ImportSummary:
        """Import every seed file in a directory (sorted by file name)."""
        directory = Path(directory)
        if not directory.is_dir():
            raise FatalError(f"Catalog directory not found: {directory}", path=str(directory))

        summary = ImportSummary()
        for path in sorted(directory.glob(pattern)):
            name, created = self._import(self.parse_file(path))
            (summary.created if created else summary.unchanged).append(name)

        logger.info(
            "Catalog import from {}: {} created, {} unchanged",
            directory,
            len(summary.created),
            len(summary.unchanged),
        )
        return summary

    def load_file(self, path: Path | str) -> ImportSummary:
        summary = ImportSummary()
        name, created = self._import(self.parse_file(Path(path)))
        (summary.created if created else summary.unchanged).append(name)
        return summary

    def import_paper(self, data: dict) -> bool:
        """Import one paper from a decoded payload. Returns True if it was created."""
        try:
            payload = PaperPayload.model_validate(data)
        except ValidationError as exc:
            raise FatalError("Invalid paper payload", errors=_error_list(exc)) from exc
        return self._import(payload)[1]

    def parse_file(self, path: Path) -> PaperPayload:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return PaperPayload.model_validate(data)
        except (OSError, json.JSONDecodeError) as exc:
            raise FatalError(f"Cannot read paper file {path}: {exc}", path=str(path)) from exc
        except ValidationError as exc:
            raise FatalError(
                f"Invalid paper file {path}", path=str(path), errors=_error_list(exc)
            ) from exc

    def _import(self, payload: PaperPayload) -> tuple[str, bool]:
        self._check_numbering(payload)

        existing = self.session.get(Paper, payload.paper)
        if existing is not None:
            if self._same_content(payload):
                logger.debug("Paper {} already published, unchanged", payload.paper)
                return payload.paper, False
            raise FatalError(
                f"Paper {payload.paper} is already published with different content",
                paper_name=payload.paper,
            )

        paper = Paper(name=payload.paper, title=payload.title)
        paper.questions = [
            Question(
                number=q.number,
                text=q.text,
                option_a=q.options["A"],
                option_b=q.options["B"],
                option_c=q.options["C"],
                option_d=q.options["D"],
                correct_option=q.correct,
            )
            for q in sorted(payload.questions, key=lambda q: q.number)
        ]
        self.session.add(paper)
        self.session.flush()
        logger.info("Published paper {} ({} questions)", payload.paper, len(paper.questions))
        return payload.paper, True

    def _check_numbering(self, payload: PaperPayload) -> None:
        numbers = sorted(q.number for q in payload.questions)
        if numbers != list(range(1, self.questions_per_paper + 1)):
            raise FatalError(
                f"Paper {payload.paper} must hold questions 1..{self.questions_per_paper} exactly once",
                paper_name=payload.paper,
                question_count=len(numbers),
            )

    def _same_content(self, payload: PaperPayload) -> bool:
        stored = {
            row.number: (row.text, row.options, row.correct_option)
            for row in self.session.scalars(
                select(Question).where(Question.paper_name == payload.paper)
            )
        }
        incoming = {q.number: (q.text, q.options, q.correct) for q in payload.questions}
        return stored == incoming
