from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from . import config, db
from .preferences import PreferenceError, Preferences

SeedEntry = Tuple[str, Optional[Tuple[float, float]]]


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_seed_entry(entry: str) -> SeedEntry:
    """Parse "category[:min-max]" into (category, range or None).

    Raises ValueError for a malformed price range.
    """
    category, sep, bounds = entry.partition(":")
    category = category.strip()
    if not category:
        raise ValueError(f"Seed entry {entry!r} has no category")
    if not sep or not bounds.strip():
        return category, None

    low, dash, high = bounds.strip().partition("-")
    if not dash:
        raise ValueError(f"Seed entry {entry!r} needs a price range like 10-100")
    return category, (float(low), float(high))


def apply_seed(preferences: Preferences, entries: List[str]) -> int:
    """Add every seed category (and its range, when given). Returns entries applied."""
    logger = logging.getLogger(__name__)
    applied = 0
    for entry in entries:
        try:
            category, price_range = parse_seed_entry(entry)
        except ValueError as exc:
            logger.warning("Ignoring seed entry: %s", exc)
            continue

        preferences.add_category(category)
        if price_range is not None:
            preferences.add_price_range(category, price_range)
        applied += 1
    return applied


def log_preferences(preferences: Preferences) -> None:
    logger = logging.getLogger(__name__)
    if not len(preferences):
        logger.info("No user preferences configured.")
        return
    logger.info("%d user preferences:", len(preferences))
    for category in preferences.categories():
        low, high = preferences.get_price_range(category)
        if low == 0.0 and high == 0.0:
            logger.info("%s | any price", category)
        else:
            logger.info("%s | $%.2f - $%.2f", category, low, high)


def main() -> None:
    """Open the preference store, apply seed preferences and report them."""
    config.validate()
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Opening %s preference storage…", config.STORAGE_BACKEND)
    with db.open_storage(config.STORAGE_BACKEND, config.SQLITE_DB_PATH) as storage:
        if config.RESET_STORAGE:
            logger.warning("RESET_STORAGE is set; dropping stored preferences.")
            storage.drop_schema()
        storage.create_schema()

        with Preferences(storage, warm=config.WARM_CACHE) as preferences:
            if config.PREFERENCE_SEED:
                try:
                    applied = apply_seed(preferences, config.PREFERENCE_SEED)
                except PreferenceError:
                    logger.exception("Failed to apply seed preferences.")
                    raise
                logger.info("Applied %d seed preferences.", applied)
            log_preferences(preferences)


if __name__ == "__main__":
    main()
