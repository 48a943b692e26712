"""
Scraper bot preference package.

This package keeps the user's interest categories and price ranges in a
write-through cache over a SQLite store, and exposes the lookups the
scraper uses to decide which listings are worth a notification.
"""

__all__ = [
    "config",
    "db",
    "filters",
    "preferences",
    "main",
    "utils",
]
