"""Resume cursor derivation.

The cursor is never stored on its own. It is the version row with the
greatest timestamp, joined to its path, read fresh from the database.
"""

from __future__ import annotations

import sqlite3

from core.errors import SyncStorageError
from core.timestamps import FeedTimestamp
from core.types import FeedRecord

_LAST_RECORD_SQL = (
    "SELECT p.path, v.version, v.timestamp "
    "FROM versions AS v JOIN paths AS p ON p.id = v.path_id "
    "ORDER BY v.timestamp DESC LIMIT 1"
)


def read_last_record(connection: sqlite3.Connection) -> FeedRecord | None:
    """Return the most recently recorded version, or None for an empty index.

    Args:
        connection: Open index database connection.

    Returns:
        Cursor record used to resume the feed.

    Raises:
        SyncStorageError: If the query fails or a stored timestamp is invalid.
    """
    try:
        row = connection.execute(_LAST_RECORD_SQL).fetchone()
    except sqlite3.Error as error:
        raise SyncStorageError(f"Failed to read last indexed version: {error}.") from error
    if row is None:
        return None
    path, version, timestamp_text = row
    try:
        timestamp = FeedTimestamp.parse(str(timestamp_text))
    except ValueError as error:
        raise SyncStorageError(
            f"Stored timestamp for {path}@{version} is invalid: {error}. "
            "The index database may be corrupt."
        ) from error
    return FeedRecord(path=path, version=version, timestamp=timestamp)
