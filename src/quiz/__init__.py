"""
Quiz practice core.

This module provides:
- QuestionCatalog: read-only access to published papers
- SessionManager: versioned per-(user, paper) progress
- score_answers: pure scoring of a finished attempt
- ResultStore: append-only completed attempts
- LeaderboardAggregator: global top-N view over results
- ResetCoordinator: atomic clearing of a user's sessions
- PracticeService: transactional facade over all of the above
"""

from .catalog import OPTIONS, PaperView, QuestionCatalog, QuestionView
from .errors import (
    ConflictError,
    DuplicateSubmission,
    FatalError,
    InvalidInputError,
    NotFoundError,
    PracticeError,
    RetryableIOError,
)
from .leaderboard import LeaderboardAggregator, LeaderboardEntry
from .reset import ResetCoordinator, ResetReport
from .result_store import ResultRecord, ResultStore
from .scoring import ScoreCard, score_answers
from .service import PracticeService
from .session_manager import CompletionOutcome, SessionManager, SessionSnapshot

__all__ = [
    "OPTIONS",
    "PaperView",
    "QuestionView",
    "QuestionCatalog",
    "SessionManager",
    "SessionSnapshot",
    "CompletionOutcome",
    "ScoreCard",
    "score_answers",
    "ResultRecord",
    "ResultStore",
    "LeaderboardAggregator",
    "LeaderboardEntry",
    "ResetCoordinator",
    "ResetReport",
    "PracticeService",
    "PracticeError",
    "InvalidInputError",
    "ConflictError",
    "NotFoundError",
    "DuplicateSubmission",
    "RetryableIOError",
    "FatalError",
]
