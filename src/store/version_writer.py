"""Transactional batch persistence.

This module writes one feed batch inside a single transaction. Paths are
resolved or created on first sighting; versions use insert-or-replace so
a feed re-emitting a known (path, version) keeps the newest timestamp.
"""

from __future__ import annotations

import sqlite3
from typing import Sequence

from core.errors import SyncStorageError
from core.types import FeedRecord

_SELECT_PATH_SQL = "SELECT id FROM paths WHERE path = ?"
_INSERT_PATH_SQL = "INSERT INTO paths (path) VALUES (?)"
_UPSERT_VERSION_SQL = (
    "INSERT OR REPLACE INTO versions (path_id, version, timestamp) VALUES (?, ?, ?)"
)


def write_batch(connection: sqlite3.Connection, records: Sequence[FeedRecord]) -> int:
    """Persist a batch of records atomically.

    Args:
        connection: Autocommit-mode index database connection.
        records: Records in feed order.

    Returns:
        Number of distinct (path, version) rows written.

    Raises:
        SyncStorageError: If any row fails. Nothing from the batch is kept.
    """
    if not records:
        return 0
    path_ids: dict[str, int] = {}
    try:
        connection.execute("BEGIN IMMEDIATE")
    except sqlite3.Error as error:
        raise SyncStorageError(f"Failed to begin batch transaction: {error}.") from error
    try:
        for record in records:
            path_id = path_ids.get(record.path)
            if path_id is None:
                path_id = _resolve_path_id(connection, record.path)
                path_ids[record.path] = path_id
            connection.execute(
                _UPSERT_VERSION_SQL,
                (path_id, record.version, record.timestamp.to_storage_text()),
            )
        connection.execute("COMMIT")
    except sqlite3.Error as error:
        _rollback(connection)
        raise SyncStorageError(
            f"Failed to write batch of {len(records)} records "
            f"({records[0].debug_string()} .. {records[-1].debug_string()}): {error}. "
            "The batch was rolled back; rerun sync to retry it."
        ) from error
    except BaseException:
        _rollback(connection)
        raise
    return len({(record.path, record.version) for record in records})


def _resolve_path_id(connection: sqlite3.Connection, path: str) -> int:
    row = connection.execute(_SELECT_PATH_SQL, (path,)).fetchone()
    if row is not None:
        return int(row[0])
    cursor = connection.execute(_INSERT_PATH_SQL, (path,))
    if cursor.lastrowid is None:
        raise sqlite3.DatabaseError(f"no row id returned for new path {path!r}")
    return int(cursor.lastrowid)


def _rollback(connection: sqlite3.Connection) -> None:
    # RAISE(ROLLBACK) in a trigger ends the transaction before we get here.
    if connection.in_transaction:
        connection.execute("ROLLBACK")
