"""
Shared fixtures for preference tests.

Provides in-memory and SQLite storages, a synchronizer over each, and a
storage double that can be told to fail writes.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable

import pytest

from scraper_bot.db import MemoryStorage, SqliteStorage, UserPreference
from scraper_bot.preferences import Preferences


class FaultyStorage(MemoryStorage):
    """MemoryStorage whose writes can report short row counts or raise."""

    def __init__(self) -> None:
        super().__init__()
        self.short_writes: set[str] = set()
        self.raise_on: set[str] = set()

    def _maybe_fail(self, op: str) -> bool:
        if op in self.raise_on:
            raise sqlite3.OperationalError("disk I/O error")
        return op in self.short_writes

    def insert_many(self, preferences: Iterable[UserPreference]) -> int:
        if self._maybe_fail("insert"):
            return 0
        return super().insert_many(preferences)

    def delete_many(self, preferences: Iterable[UserPreference]) -> int:
        if self._maybe_fail("delete"):
            return 0
        return super().delete_many(preferences)

    def update_many(self, preferences: Iterable[UserPreference]) -> int:
        if self._maybe_fail("update"):
            return 0
        return super().update_many(preferences)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    storage = MemoryStorage()
    storage.create_schema()
    return storage


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "Storage" / "pref.sqlite"


@pytest.fixture
def sqlite_storage(db_path: Path):
    storage = SqliteStorage(str(db_path))
    storage.create_schema()
    yield storage
    storage.close()


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, memory_storage, sqlite_storage):
    """Run a test once per storage backend."""
    return memory_storage if request.param == "memory" else sqlite_storage


@pytest.fixture
def preferences(storage) -> Preferences:
    return Preferences(storage)


@pytest.fixture
def faulty_storage() -> FaultyStorage:
    storage = FaultyStorage()
    storage.create_schema()
    return storage
