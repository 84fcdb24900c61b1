"""
Bounded retry with exponential backoff for transient store failures.

Driver-level OperationalError (lock timeouts, dropped connections, SQLite
"database is locked") and RetryableIOError raised by the stores are retried;
everything else propagates on the first attempt.
"""
from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError, OperationalError

from src.quiz.errors import RetryableIOError

T = TypeVar("T")


def _as_retryable(exc: Exception, description: str) -> RetryableIOError | None:
    if isinstance(exc, RetryableIOError):
        return exc
    if isinstance(exc, OperationalError) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return RetryableIOError(f"Transient store failure during {description}")
    return None


def run_with_retry(
    operation: Callable[[], T],
    attempts: int = 3,
    initial_delay: float = 0.1,
    description: str = "store operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or the attempts are used up.

    Args:
        operation: Callable running one complete transaction
        attempts: Maximum number of attempts (>= 1)
        initial_delay: Seconds before the first retry, doubled after each attempt
        description: Label used in log messages
        sleep: Injectable sleep function

    Raises:
        RetryableIOError: the last transient failure once attempts are exhausted
    """
    delay = initial_delay
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except (RetryableIOError, DBAPIError) as exc:
            retryable = _as_retryable(exc, description)
            if retryable is None:
                raise
            if attempt == attempts:
                logger.error(
                    "{} failed after {} attempts: {}", description, attempts, retryable.message
                )
                if retryable is exc:
                    raise
                raise retryable from exc
            logger.warning(
                "{} failed (attempt {}/{}): {}. Retrying in {:.2f}s",
                description,
                attempt,
                attempts,
                retryable.message,
                delay,
            )
            sleep(delay)
            delay *= 2

    raise RetryableIOError(f"{description} was not attempted")
