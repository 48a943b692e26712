"""Listing filter used before a scraped deal is forwarded as a notification.

Only the read-only side of `Preferences` is used here: a listing passes
when its category is one the user asked for and its price falls inside
that category's range (if one is set).

The scraper lower-cases the category text it reads from a listing, so only
preferences whose category is entered in lower case can ever match here;
category keys themselves stay case-sensitive in `Preferences`.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .preferences import NO_PRICE_RANGE, Preferences

logger = logging.getLogger(__name__)

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?|\.\d+")


def parse_price(text: Optional[str]) -> Optional[float]:
    """Return the first number found in a scraped price string.

    "$1,299.00" -> 1299.0, "A$15 off" -> 15.0, "Free" -> None.
    """
    if not text:
        return None
    m = _PRICE_RE.search(text)
    if not m:
        return None
    try:
        return float(m.group(0).replace(",", ""))
    except ValueError:
        return None


def within_price_range(price: float, price_range: tuple[float, float]) -> bool:
    if tuple(price_range) == NO_PRICE_RANGE:
        return True
    low, high = price_range
    return low <= price <= high


def should_notify(preferences: Preferences, category: Optional[str], price: Optional[float]) -> bool:
    """Decide whether a listing matches the user's categories and price bounds."""
    key = (category or "").strip().lower()
    if not key:
        return False

    found, pref = preferences.find_by_category(key)
    if not found or pref is None:
        return False

    if not pref.has_price_range:
        return True
    if price is None:
        logger.debug("Skipping %r listing without a price; range %s is set.", key, pref.price_range)
        return False
    return within_price_range(price, pref.price_range)


__all__ = ["parse_price", "within_price_range", "should_notify"]
