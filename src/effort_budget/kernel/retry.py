"""
Retry with exponential backoff for SQLite lock contention.

Write transactions open with BEGIN IMMEDIATE, which fails fast with
"database is locked" when another writer holds the lock. Opening the
transaction is retried; the body of a transaction never is, because a
partially executed body has already been rolled back and the caller
decides whether to resubmit.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from effort_budget.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_lock_error(exc: BaseException) -> bool:
    """True for sqlite3 errors caused by a concurrent lock holder"""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def retry_on_sqlite_lock(
    max_attempts: int = 5,
    min_wait_ms: int = 50,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for "database is locked" errors.

    Args:
        max_attempts: Maximum number of attempts (default: 5)
        min_wait_ms: Minimum wait between attempts in milliseconds
        max_wait_ms: Maximum wait between attempts in milliseconds

    Example:
        @retry_on_sqlite_lock()
        def _begin(conn):
            conn.execute("BEGIN IMMEDIATE")
    """
    return retry(
        retry=retry_if_exception(is_lock_error),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )
