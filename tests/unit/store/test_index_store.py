"""Unit tests for index database setup."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from core.errors import SyncStorageError
from store.index_store import count_index_rows, open_index_database


def test_open_index_database_creates_schema(tmp_path: Path) -> None:
    """Opening a new database should create both tables and the timestamp index."""
    connection = open_index_database(tmp_path / "index.db")
    names = {
        name
        for (name,) in connection.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'index')"
        )
    }

    assert {"paths", "versions", "idx_versions_timestamp"} <= names


def test_open_index_database_is_idempotent(tmp_path: Path) -> None:
    """Reopening an existing database should keep its rows."""
    db_path = tmp_path / "index.db"
    first = open_index_database(db_path)
    first.execute("INSERT INTO paths (path) VALUES ('example.com/a')")
    first.close()

    second = open_index_database(db_path)

    assert count_index_rows(second).paths == 1


def test_versions_require_existing_path(tmp_path: Path) -> None:
    """Foreign keys should be enforced on version rows."""
    connection = open_index_database(tmp_path / "index.db")

    with pytest.raises(sqlite3.IntegrityError):
        connection.execute(
            "INSERT INTO versions (path_id, version, timestamp) VALUES (42, 'v1', 'x')"
        )


def test_open_index_database_raises_for_unwritable_location(tmp_path: Path) -> None:
    """A path inside a missing directory should raise a storage error."""
    with pytest.raises(SyncStorageError):
        open_index_database(tmp_path / "missing" / "index.db")
