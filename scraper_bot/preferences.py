"""User preference synchronizer.

Keeps an in-memory index of `UserPreference` objects consistent with a
`Storage` backend.  Every mutation is written to the store first and only
mirrored into the cache once the store acknowledged the expected number of
rows; lookups are answered from the cache alone.  A mutation that misses
the cache consults the store once, so a cold cache still sees rows written
by an earlier run.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import replace
from enum import Enum
from numbers import Real
from typing import Callable, Optional, Sequence, TypeVar

from .db import Storage, UserPreference

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_PRICE_RANGE: tuple[float, float] = (0.0, 0.0)


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    STORAGE_FAILURE = "storage_failure"


class PreferenceError(Exception):
    """Base class for preference failures; `kind` tags the failure."""

    kind: ErrorKind


class InvalidArgument(PreferenceError, ValueError):
    """Raised for a missing or malformed category or price range."""

    kind = ErrorKind.INVALID_ARGUMENT


class UserPreferenceNotFound(PreferenceError, LookupError):
    """Raised when an operation needs a category that was never added."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, category: str) -> None:
        super().__init__(f"No user preference for category {category!r}")
        self.category = category


class StorageFailure(PreferenceError):
    """Raised when the store errors out or touches an unexpected number of rows."""

    kind = ErrorKind.STORAGE_FAILURE


def _check_category(category: object) -> str:
    if category is None:
        raise InvalidArgument("category must not be None")
    if not isinstance(category, str):
        raise InvalidArgument(f"category must be a string, got {type(category).__name__}")
    if not category.strip():
        raise InvalidArgument("category must not be empty")
    return category


def _check_price_range(price_range: object) -> tuple[float, float]:
    if price_range is None:
        raise InvalidArgument("price range must not be None")
    if isinstance(price_range, (str, bytes)) or not isinstance(price_range, Sequence):
        raise InvalidArgument("price range must be a (min, max) pair")
    if len(price_range) != 2:
        raise InvalidArgument("price range must be a (min, max) pair")
    bounds = []
    for value in price_range:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidArgument(f"price bounds must be numbers, got {value!r}")
        bounds.append(float(value))
    return bounds[0], bounds[1]


class Preferences:
    """Write-through cache of user preferences over a `Storage` backend.

    A single re-entrant lock guards the store and cache pair, so concurrent
    callers never observe a cache entry whose store write is still pending.
    The synchronizer owns the storage: `close()` shuts both down.
    """

    def __init__(self, storage: Storage, *, warm: bool = True) -> None:
        if storage is None:
            raise InvalidArgument("storage must not be None")
        self._storage = storage
        self._cache: dict[str, UserPreference] = {}
        self._lock = threading.RLock()
        if warm:
            self.reload()

    @property
    def storage(self) -> Storage:
        return self._storage

    def _call_store(self, action: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except sqlite3.Error as exc:
            logger.error("Storage error while trying to %s: %s", action, exc)
            raise StorageFailure(f"Failed to {action}: {exc}") from exc

    def _expect_rows(self, action: str, touched: int, expected: int) -> None:
        if touched != expected:
            logger.error(
                "Storage touched %d of %d rows while trying to %s; cache left unchanged.",
                touched, expected, action,
            )
            raise StorageFailure(f"Failed to {action}: {touched} of {expected} rows affected")

    def reload(self) -> int:
        """Rebuild the cache from the store. Returns the number of cached preferences."""
        with self._lock:
            rows = self._call_store("load preferences", self._storage.list_all)
            self._cache = {p.category: p for p in rows}
            logger.info("Loaded %d user preferences into cache.", len(self._cache))
            return len(self._cache)

    def _resolve(self, category: str) -> Optional[UserPreference]:
        """Return the cached preference, falling back to the store on a miss.

        A row found only in the store (cold cache) is cached before use.
        Callers must hold the lock.
        """
        current = self._cache.get(category)
        if current is None:
            current = self._call_store(
                f"look up category {category!r}", lambda: self._storage.get_by_category(category)
            )
            if current is not None:
                self._cache[category] = current
        return current

    # ---- Categories ----------------------------------------------------------

    def add_category(self, category: str) -> bool:
        """Add a category with no price range.

        Adding a category that is already present is a no-op and still
        returns True.
        """
        category = _check_category(category)
        with self._lock:
            if self._resolve(category) is not None:
                logger.debug("Category %r already present.", category)
                return True

            action = f"add category {category!r}"
            inserted = self._call_store(
                action, lambda: self._storage.insert_many([UserPreference(category)])
            )
            self._expect_rows(action, inserted, 1)
            stored = self._call_store(action, lambda: self._storage.get_by_category(category))
            if stored is None:
                raise StorageFailure(f"Failed to {action}: row missing after insert")

            self._cache[category] = stored
            logger.info("Added category %r.", category)
            return True

    def remove_category(self, category: str) -> bool:
        """Remove a category. Returns False if it was not present."""
        category = _check_category(category)
        with self._lock:
            current = self._resolve(category)
            if current is None:
                return False

            action = f"remove category {category!r}"
            deleted = self._call_store(action, lambda: self._storage.delete_many([current]))
            self._expect_rows(action, deleted, 1)

            del self._cache[category]
            logger.info("Removed category %r.", category)
            return True

    # ---- Price ranges --------------------------------------------------------

    def _set_bounds(self, current: UserPreference, bounds: tuple[float, float], action: str) -> None:
        updated_pref = replace(current, min_price=bounds[0], max_price=bounds[1])
        updated = self._call_store(action, lambda: self._storage.update_many([updated_pref]))
        self._expect_rows(action, updated, 1)
        self._cache[current.category] = updated_pref

    def add_price_range(self, category: str, price_range: tuple[float, float]) -> bool:
        """Attach an inclusive (min, max) price range to an existing category.

        Bounds are stored as given; no ordering between them is enforced.
        Raises `UserPreferenceNotFound` if the category was never added.
        """
        category = _check_category(category)
        bounds = _check_price_range(price_range)
        with self._lock:
            current = self._resolve(category)
            if current is None:
                raise UserPreferenceNotFound(category)

            self._set_bounds(current, bounds, f"set price range on {category!r}")
            logger.info("Set price range %.2f-%.2f on %r.", bounds[0], bounds[1], category)
            return True

    def remove_price_range(self, category: str) -> bool:
        """Clear the price range of a category. Returns False if it was not present."""
        category = _check_category(category)
        with self._lock:
            current = self._resolve(category)
            if current is None:
                return False

            self._set_bounds(current, NO_PRICE_RANGE, f"clear price range on {category!r}")
            logger.info("Cleared price range on %r.", category)
            return True

    def get_price_range(self, category: str) -> tuple[float, float]:
        """Return the (min, max) range of a category; (0.0, 0.0) when unset."""
        category = _check_category(category)
        with self._lock:
            current = self._cache.get(category)
        if current is None:
            raise UserPreferenceNotFound(category)
        return current.price_range

    # ---- Cache lookups -------------------------------------------------------

    def find_user_preference_from_cache(self, category: str) -> tuple[bool, Optional[UserPreference]]:
        with self._lock:
            pref = self._cache.get(category) if isinstance(category, str) else None
        return pref is not None, pref

    find_by_category = find_user_preference_from_cache

    def categories(self) -> list[str]:
        with self._lock:
            return sorted(self._cache)

    def __contains__(self, category: object) -> bool:
        with self._lock:
            return isinstance(category, str) and category in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    # ---- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._cache.clear()
            self._storage.close()

    def __enter__(self) -> "Preferences":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = [
    "ErrorKind",
    "PreferenceError",
    "InvalidArgument",
    "UserPreferenceNotFound",
    "StorageFailure",
    "NO_PRICE_RANGE",
    "Preferences",
]
