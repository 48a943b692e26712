from __future__ import annotations

import sqlite3

import pytest

from scraper_bot.utils import is_transient_db_error, retryable_write


def test_is_transient_db_error():
    assert is_transient_db_error(sqlite3.OperationalError("database is locked"))
    assert is_transient_db_error(sqlite3.OperationalError("database table is busy"))
    assert not is_transient_db_error(sqlite3.OperationalError("no such table: user_preferences"))
    assert not is_transient_db_error(ValueError("locked"))


def test_retryable_write_retries_lock_errors():
    calls = []

    @retryable_write
    def write() -> int:
        calls.append(1)
        if len(calls) < 2:
            raise sqlite3.OperationalError("database is locked")
        return 1

    assert write() == 1
    assert len(calls) == 2


def test_retryable_write_reraises_other_errors_immediately():
    calls = []

    @retryable_write
    def write() -> int:
        calls.append(1)
        raise sqlite3.IntegrityError("UNIQUE constraint failed")

    with pytest.raises(sqlite3.IntegrityError):
        write()
    assert len(calls) == 1


def test_retryable_write_gives_up_after_three_attempts():
    calls = []

    @retryable_write
    def write() -> int:
        calls.append(1)
        raise sqlite3.OperationalError("database is locked")

    with pytest.raises(sqlite3.OperationalError):
        write()
    assert len(calls) == 3
