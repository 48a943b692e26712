"""Configuration loader.

Reads environment variables and `.env` to configure the preference store.
"""

from __future__ import annotations

import os
from typing import Optional, List
from pathlib import Path

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _get_list(name: str) -> list[str]:
    raw = _get_env(name, "") or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


# ---- Storage -----------------------------------------------------------------

# Backend for user preferences: "sqlite" (durable) or "memory" (dry runs).
STORAGE_BACKEND: str = (_get_env("STORAGE_BACKEND", "sqlite") or "sqlite").strip().lower()

# Path to SQLite database holding the preference table.
SQLITE_DB_PATH: str = _get_env("SQLITE_DB_PATH", "Storage/pref.sqlite")

# Populate the in-memory cache from the store when the bot starts.
WARM_CACHE: bool = _parse_bool(_get_env("WARM_CACHE", "true"), True)

# Drop the preference table before bootstrapping (destructive).
RESET_STORAGE: bool = _parse_bool(_get_env("RESET_STORAGE", "false"), False)

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# ---- Seed preferences --------------------------------------------------------

# Comma-separated "category[:min-max]" entries applied at startup,
# e.g. "electronics:10-100,gardening".
PREFERENCE_SEED: List[str] = _get_list("PREFERENCE_SEED")

# ---- Validation --------------------------------------------------------------

_BACKENDS = ("sqlite", "memory")


def validate() -> None:
    """Validate required configuration parameters."""
    if STORAGE_BACKEND not in _BACKENDS:
        raise RuntimeError(
            f"STORAGE_BACKEND must be one of {', '.join(_BACKENDS)}, got {STORAGE_BACKEND!r}."
        )
    if STORAGE_BACKEND == "sqlite" and not SQLITE_DB_PATH:
        raise RuntimeError("SQLITE_DB_PATH must be set when STORAGE_BACKEND=sqlite.")


__all__ = [
    # Storage
    "STORAGE_BACKEND",
    "SQLITE_DB_PATH",
    "WARM_CACHE",
    "RESET_STORAGE",
    "LOG_LEVEL",
    # Seed
    "PREFERENCE_SEED",
    # Helpers
    "validate",
]
