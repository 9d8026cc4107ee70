"""SQLite index database setup.

This module opens the index database and ensures the paths/versions
schema exists. The connection runs in autocommit mode so that batch
writers control transaction boundaries explicitly.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path

from core.errors import SyncStorageError

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS paths (
    id INTEGER PRIMARY KEY ASC,
    path TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS versions (
    path_id INTEGER REFERENCES paths(id),
    version TEXT,
    timestamp TEXT,
    PRIMARY KEY (path_id, version)
) WITHOUT ROWID;
CREATE INDEX IF NOT EXISTS idx_versions_timestamp ON versions(timestamp);
"""


@dataclass(frozen=True)
class IndexCounts:
    """Row counts for the index tables."""

    paths: int
    versions: int


def open_index_database(db_path: Path | str) -> sqlite3.Connection:
    """Open the index database and create missing tables.

    Args:
        db_path: SQLite file path, or ``:memory:``.

    Returns:
        Connection with foreign keys enforced and autocommit enabled.

    Raises:
        SyncStorageError: If the database cannot be opened or migrated.
    """
    try:
        connection = sqlite3.connect(str(db_path), isolation_level=None)
        connection.execute("PRAGMA foreign_keys=ON")
        connection.executescript(_SCHEMA_SQL)
    except sqlite3.Error as error:
        raise SyncStorageError(
            f"Failed to open index database at {db_path}: {error}. "
            "Check the path and file permissions."
        ) from error
    return connection


def count_index_rows(connection: sqlite3.Connection) -> IndexCounts:
    """Return path and version row counts."""
    try:
        path_count = connection.execute("SELECT COUNT(*) FROM paths").fetchone()[0]
        version_count = connection.execute("SELECT COUNT(*) FROM versions").fetchone()[0]
    except sqlite3.Error as error:
        raise SyncStorageError(f"Failed to count index rows: {error}.") from error
    return IndexCounts(paths=int(path_count), versions=int(version_count))
