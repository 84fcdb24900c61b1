"""
Scoring Engine.

Pure computation of a completed attempt: compares the selected answers with
the paper's answer key. Unanswered questions count as wrong, so
correct + wrong always equals the number of questions in the key.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ScoreCard:
    """Scoring output for one attempt."""

    score: int
    correct_answers: int
    wrong_answers: int
    time_taken_minutes: int

    @property
    def total(self) -> int:
        return self.correct_answers + self.wrong_answers


def minutes_between(started_at: datetime, completed_at: datetime) -> int:
    """Whole minutes elapsed, floored; never negative."""
    seconds = (completed_at - started_at).total_seconds()
    return max(0, math.floor(seconds / 60))


def score_answers(
    selected_answers: Mapping[int, str],
    answer_key: Mapping[int, str],
    started_at: datetime,
    completed_at: datetime,
) -> ScoreCard:
    """
    Score an attempt against the answer key.

    Args:
        selected_answers: question number -> chosen option (entries optional)
        answer_key: question number -> correct option, one entry per question
        started_at: when the session was created
        completed_at: when completion was requested

    Returns:
        ScoreCard with score == correct_answers
    """
    correct = sum(
        1 for number, option in answer_key.items() if selected_answers.get(number) == option
    )
    wrong = len(answer_key) - correct
    return ScoreCard(
        score=correct,
        correct_answers=correct,
        wrong_answers=wrong,
        time_taken_minutes=minutes_between(started_at, completed_at),
    )
