"""
Error taxonomy for practice operations.

Callers branch on the class:
- InvalidInputError: malformed request, never retried
- ConflictError: stale version, refetch and retry
- NotFoundError: unknown session or paper
- DuplicateSubmission: idempotency key already used (carries the prior result)
- RetryableIOError: transient store failure, already retried with backoff
- FatalError: catalog or schema inconsistency
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.quiz.result_store import ResultRecord


class PracticeError(Exception):
    """Base class for all practice errors."""

    code = "practice_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class InvalidInputError(PracticeError):
    """Raised for a malformed question number, option or paper name."""

    code = "invalid_input"


class ConflictError(PracticeError):
    """Raised when a write lost against a concurrent one."""

    code = "conflict"

    @classmethod
    def stale_version(
        cls, session_id: str, expected_version: int, current_version: int
    ) -> "ConflictError":
        return cls(
            "Session was modified concurrently; refresh and retry",
            session_id=session_id,
            expected_version=expected_version,
            current_version=current_version,
        )


class NotFoundError(PracticeError):
    """Raised for an unknown session or paper."""

    code = "not_found"


class DuplicateSubmission(PracticeError):
    """
    The idempotency key was already used for this completion.

    Not a failure: the prior result is attached and returned to the caller.
    """

    code = "duplicate_submission"

    def __init__(self, idempotency_key: str, result: "ResultRecord"):
        super().__init__("Idempotency key already used", idempotency_key=idempotency_key)
        self.idempotency_key = idempotency_key
        self.result = result


class RetryableIOError(PracticeError):
    """Transient storage failure that survived the bounded retry loop."""

    code = "retryable_io"


class FatalError(PracticeError):
    """Catalog or schema inconsistency; surfaced immediately."""

    code = "fatal"
