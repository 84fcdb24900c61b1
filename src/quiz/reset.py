"""
Reset Coordinator.

Clears every in-progress session of a user in one transaction. Results and
the catalog are left untouched. The user's session rows are locked before the
delete, so a concurrent answer or navigation on one of them either commits
first or finds the session gone afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from src.db.models import PaperSession
from src.quiz.errors import RetryableIOError
from src.quiz.session_manager import validate_user_id


@dataclass
class ResetReport:
    """What a reset removed."""

    user_id: str
    sessions_cleared: int = 0
    papers: list[str] = field(default_factory=list)


class ResetCoordinator:
    """All-or-nothing removal of a user's sessions."""

    def __init__(self, session: Session):
        self.session = session

    def reset_all(self, user_id: str) -> ResetReport:
        """
        Delete all of the user's sessions across every paper.

        Must run inside a transaction; on any failure the caller rolls back
        and no session is removed.

        Raises:
            RetryableIOError: sessions remained after the delete
        """
        user_id = validate_user_id(user_id)

        locked = self.session.execute(
            select(PaperSession.id, PaperSession.paper_name)
            .where(PaperSession.user_id == user_id)
            .order_by(PaperSession.paper_name)
            .with_for_update()
        ).all()

        self.session.execute(
            delete(PaperSession)
            .where(PaperSession.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )

        remaining = self.session.scalar(
            select(func.count()).select_from(PaperSession).where(PaperSession.user_id == user_id)
        )
        if remaining:
            logger.error("Reset of {} left {} sessions; rolling back", user_id, remaining)
            raise RetryableIOError(
                "Reset could not clear every session", user_id=user_id, remaining=remaining
            )

        report = ResetReport(
            user_id=user_id,
            sessions_cleared=len(locked),
            papers=[paper_name for _, paper_name in locked],
        )
        logger.info("Reset {}: cleared {} sessions", user_id, report.sessions_cleared)
        return report
