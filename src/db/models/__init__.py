# SQLAlchemy models
from .attempts import AttemptResult, LeaderboardRow, PaperSession
from .base import Base
from .catalog import Paper, Question

__all__ = [
    # Base
    "Base",
    # Catalog
    "Paper",
    "Question",
    # Attempts
    "PaperSession",
    "AttemptResult",
    "LeaderboardRow",
]
