"""Persistence layer for user preferences.

`Storage` is the narrow contract the preference synchronizer relies on.
`SqliteStorage` is the durable backend; `MemoryStorage` keeps rows in a
dict and is used for dry runs and tests.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Optional

from .utils import retryable_write

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "Storage/pref.sqlite"
TABLE_NAME = "user_preferences"


@dataclass(frozen=True)
class UserPreference:
    category: str
    min_price: float = 0.0
    max_price: float = 0.0
    id: Optional[int] = None  # store surrogate key

    @property
    def price_range(self) -> tuple[float, float]:
        return (self.min_price, self.max_price)

    @property
    def has_price_range(self) -> bool:
        return not (self.min_price == 0.0 and self.max_price == 0.0)


class Storage(ABC):
    """Key-addressed persistence for `UserPreference` rows."""

    @abstractmethod
    def create_schema(self) -> bool:
        """Create the preference table. Returns True only if it was newly created."""

    @abstractmethod
    def drop_schema(self) -> bool:
        """Drop the preference table. Returns True if it existed."""

    @abstractmethod
    def list_all(self) -> list[UserPreference]:
        """Return every stored preference ordered by id."""

    @abstractmethod
    def get_by_category(self, category: str) -> Optional[UserPreference]:
        ...

    @abstractmethod
    def insert_many(self, preferences: Iterable[UserPreference]) -> int:
        """Insert rows, skipping categories that already exist. Returns rows inserted."""

    @abstractmethod
    def delete_many(self, preferences: Iterable[UserPreference]) -> int:
        """Delete rows by id. Returns rows deleted."""

    @abstractmethod
    def update_many(self, preferences: Iterable[UserPreference]) -> int:
        """Rewrite the price bounds of rows by id. Returns rows updated."""

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self) -> "Storage":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _row_to_preference(row: tuple) -> UserPreference:
    pid, category, min_price, max_price = row
    return UserPreference(
        category=category,
        min_price=float(min_price),
        max_price=float(max_price),
        id=int(pid),
    )


class SqliteStorage(Storage):
    """SQLite-backed preference table.

    One connection is held for the lifetime of the storage and shared
    between threads; a lock serialises access to it.  Bulk writes run in a
    single transaction, so a failing row rolls back the whole batch.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, *, timeout: float = 5.0) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
        self._closed = False
        logger.debug("Opened preference database at %s", db_path)

    def _table_exists(self) -> bool:
        cur = self._conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ? LIMIT 1",
            (TABLE_NAME,),
        )
        return cur.fetchone() is not None

    def create_schema(self) -> bool:
        with self._lock, self._conn:
            if self._table_exists():
                return False
            self._conn.execute(f"""
              CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category TEXT NOT NULL UNIQUE,
                min_price REAL NOT NULL DEFAULT 0,
                max_price REAL NOT NULL DEFAULT 0
              )
            """)
        logger.info("Created %s table in %s", TABLE_NAME, self.db_path)
        return True

    def drop_schema(self) -> bool:
        with self._lock, self._conn:
            existed = self._table_exists()
            self._conn.execute(f"DROP TABLE IF EXISTS {TABLE_NAME}")
        if existed:
            logger.info("Dropped %s table from %s", TABLE_NAME, self.db_path)
        return existed

    def list_all(self) -> list[UserPreference]:
        with self._lock:
            cur = self._conn.execute(
                f"SELECT id, category, min_price, max_price FROM {TABLE_NAME} ORDER BY id"
            )
            return [_row_to_preference(r) for r in cur.fetchall()]

    def get_by_category(self, category: str) -> Optional[UserPreference]:
        with self._lock:
            cur = self._conn.execute(
                f"SELECT id, category, min_price, max_price FROM {TABLE_NAME} WHERE category = ? LIMIT 1",
                (category,),
            )
            row = cur.fetchone()
        return _row_to_preference(row) if row else None

    def insert_many(self, preferences: Iterable[UserPreference]) -> int:
        rows = [(str(p.category), float(p.min_price), float(p.max_price)) for p in preferences]
        return self._insert_rows(rows)

    @retryable_write
    def _insert_rows(self, rows: list[tuple]) -> int:
        inserted = 0
        with self._lock, self._conn:
            for row in rows:
                cur = self._conn.execute(
                    f"INSERT OR IGNORE INTO {TABLE_NAME} (category, min_price, max_price) VALUES (?, ?, ?)",
                    row,
                )
                inserted += cur.rowcount
        return inserted

    def delete_many(self, preferences: Iterable[UserPreference]) -> int:
        return self._delete_ids([p.id for p in preferences])

    @retryable_write
    def _delete_ids(self, ids: list[Optional[int]]) -> int:
        deleted = 0
        with self._lock, self._conn:
            for pid in ids:
                if pid is None:
                    continue
                cur = self._conn.execute(f"DELETE FROM {TABLE_NAME} WHERE id = ?", (int(pid),))
                deleted += cur.rowcount
        return deleted

    def update_many(self, preferences: Iterable[UserPreference]) -> int:
        rows = [
            (float(p.min_price), float(p.max_price), p.id)
            for p in preferences
        ]
        return self._update_rows(rows)

    @retryable_write
    def _update_rows(self, rows: list[tuple]) -> int:
        updated = 0
        with self._lock, self._conn:
            for min_price, max_price, pid in rows:
                if pid is None:
                    continue
                cur = self._conn.execute(
                    f"UPDATE {TABLE_NAME} SET min_price = ?, max_price = ? WHERE id = ?",
                    (min_price, max_price, int(pid)),
                )
                updated += cur.rowcount
        return updated

    def count(self) -> int:
        with self._lock:
            cur = self._conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}")
            return int(cur.fetchone()[0])

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True
        logger.debug("Closed preference database at %s", self.db_path)

    def destroy(self) -> bool:
        """Close the connection and delete the database file."""
        self.close()
        if self.db_path == ":memory:":
            return False
        path = Path(self.db_path)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted preference database %s", self.db_path)
        return True


class MemoryStorage(Storage):
    """Dict-backed storage with the same contract as `SqliteStorage`.

    Rows are usable without calling `create_schema`; the schema flag only
    drives the return values of `create_schema` and `drop_schema`.  After
    `close()` every operation raises `sqlite3.ProgrammingError`, as a
    closed SQLite connection does.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[int, UserPreference] = {}
        self._next_id = 1
        self._schema = False
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise sqlite3.ProgrammingError("Cannot operate on a closed storage.")

    def create_schema(self) -> bool:
        self._check_open()
        with self._lock:
            created = not self._schema
            self._schema = True
            return created

    def drop_schema(self) -> bool:
        self._check_open()
        with self._lock:
            existed = self._schema
            self._schema = False
            self._rows.clear()
            return existed

    def list_all(self) -> list[UserPreference]:
        self._check_open()
        with self._lock:
            return [self._rows[k] for k in sorted(self._rows)]

    def get_by_category(self, category: str) -> Optional[UserPreference]:
        self._check_open()
        with self._lock:
            for pref in self._rows.values():
                if pref.category == category:
                    return pref
        return None

    def insert_many(self, preferences: Iterable[UserPreference]) -> int:
        self._check_open()
        inserted = 0
        with self._lock:
            taken = {p.category for p in self._rows.values()}
            for p in preferences:
                if p.category in taken:
                    continue
                row = replace(p, min_price=float(p.min_price), max_price=float(p.max_price), id=self._next_id)
                self._rows[self._next_id] = row
                self._next_id += 1
                taken.add(p.category)
                inserted += 1
        return inserted

    def delete_many(self, preferences: Iterable[UserPreference]) -> int:
        self._check_open()
        deleted = 0
        with self._lock:
            for p in preferences:
                if p.id is not None and self._rows.pop(p.id, None) is not None:
                    deleted += 1
        return deleted

    def update_many(self, preferences: Iterable[UserPreference]) -> int:
        self._check_open()
        updated = 0
        with self._lock:
            for p in preferences:
                current = self._rows.get(p.id) if p.id is not None else None
                if current is None:
                    continue
                self._rows[p.id] = replace(current, min_price=float(p.min_price), max_price=float(p.max_price))
                updated += 1
        return updated

    def count(self) -> int:
        self._check_open()
        with self._lock:
            return len(self._rows)

    def close(self) -> None:
        with self._lock:
            self._closed = True


def open_storage(backend: str = "sqlite", db_path: str = DEFAULT_DB_PATH) -> Storage:
    """Return a storage backend by name ("sqlite" or "memory")."""
    name = (backend or "").strip().lower()
    if name == "sqlite":
        return SqliteStorage(db_path)
    if name == "memory":
        return MemoryStorage()
    raise ValueError(f"Unknown storage backend: {backend!r}")


__all__ = [
    "DEFAULT_DB_PATH",
    "UserPreference",
    "Storage",
    "SqliteStorage",
    "MemoryStorage",
    "open_storage",
]
