from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import pytest

from scraper_bot import config, db, main
from scraper_bot.db import MemoryStorage, SqliteStorage
from scraper_bot.preferences import Preferences


@pytest.mark.parametrize(
    "entry, expected",
    [
        ("gardening", ("gardening", None)),
        ("test category:", ("test category", None)),
        ("electronics:10-100", ("electronics", (10.0, 100.0))),
        (" cars : 5.5 - 20 ", ("cars", (5.5, 20.0))),
    ],
)
def test_parse_seed_entry(entry, expected):
    assert main.parse_seed_entry(entry) == expected


@pytest.mark.parametrize("entry", [":10-20", "cars:abc", "cars:10"])
def test_parse_seed_entry_rejects_malformed(entry):
    with pytest.raises(ValueError):
        main.parse_seed_entry(entry)


def test_apply_seed_skips_bad_entries(caplog):
    preferences = Preferences(MemoryStorage())
    with caplog.at_level(logging.WARNING):
        applied = main.apply_seed(preferences, ["electronics:10-100", "cars:10", "gardening"])

    assert applied == 2
    assert preferences.categories() == ["electronics", "gardening"]
    assert preferences.get_price_range("electronics") == (10.0, 100.0)
    assert "Ignoring seed entry" in caplog.text


def test_main_seeds_sqlite_store(tmp_path: Path, monkeypatch):
    db_file = tmp_path / "Storage" / "pref.sqlite"
    monkeypatch.setattr(config, "STORAGE_BACKEND", "sqlite")
    monkeypatch.setattr(config, "SQLITE_DB_PATH", str(db_file))
    monkeypatch.setattr(config, "PREFERENCE_SEED", ["electronics:10-100", "gardening"])
    monkeypatch.setattr(config, "RESET_STORAGE", False)

    main.main()
    main.main()

    with SqliteStorage(str(db_file)) as storage:
        rows = {p.category: p.price_range for p in storage.list_all()}
    assert rows == {"electronics": (10.0, 100.0), "gardening": (0.0, 0.0)}


def test_main_rejects_unknown_backend(monkeypatch):
    monkeypatch.setattr(config, "STORAGE_BACKEND", "postgres")
    with pytest.raises(RuntimeError):
        main.main()


def test_main_reruns_with_cold_cache(tmp_path: Path, monkeypatch):
    db_file = tmp_path / "pref.sqlite"
    monkeypatch.setattr(config, "STORAGE_BACKEND", "sqlite")
    monkeypatch.setattr(config, "SQLITE_DB_PATH", str(db_file))
    monkeypatch.setattr(config, "WARM_CACHE", False)
    monkeypatch.setattr(config, "PREFERENCE_SEED", ["gardening", "electronics:10-100"])
    monkeypatch.setattr(config, "RESET_STORAGE", False)

    main.main()
    main.main()

    with SqliteStorage(str(db_file)) as storage:
        rows = {p.category: p.price_range for p in storage.list_all()}
    assert rows == {"gardening": (0.0, 0.0), "electronics": (10.0, 100.0)}


def test_main_closes_storage_when_setup_fails(monkeypatch):
    class BrokenSchemaStorage(MemoryStorage):
        def create_schema(self) -> bool:
            raise sqlite3.OperationalError("disk I/O error")

    storage = BrokenSchemaStorage()
    monkeypatch.setattr(config, "STORAGE_BACKEND", "memory")
    monkeypatch.setattr(config, "RESET_STORAGE", False)
    monkeypatch.setattr(db, "open_storage", lambda backend, path: storage)

    with pytest.raises(sqlite3.OperationalError):
        main.main()

    with pytest.raises(sqlite3.ProgrammingError):
        storage.count()
