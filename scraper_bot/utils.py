"""Helper utilities.

This module centralises the retry policy applied to SQLite writes.  A
second process (or a long-running reader) may briefly hold the database
lock; those failures are transient and worth a few more attempts, while
every other database error is raised straight away.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, TypeVar

from tenacity import (after_log, retry, retry_if_exception,
                      stop_after_attempt, wait_exponential)


logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def is_transient_db_error(exc: BaseException) -> bool:
    """Return True for SQLite errors caused by a busy or locked database."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def retryable_write(method: F) -> F:
    """Decorator applying retry logic to storage writes.

    Retries are attempted only for transient lock errors.  A maximum of 3
    attempts are made with exponential back-off between 0.1 and 2 seconds;
    the last error is re-raised unchanged.
    """

    return retry(  # type: ignore[return-value]
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception(is_transient_db_error),
        after=after_log(logger, logging.WARNING),
    )(method)


__all__ = ["is_transient_db_error", "retryable_write"]
