"""Core constants used across modsync modules.

This module centralizes feed, storage, and loop defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DB_PATH = Path("index.db")
DEFAULT_FEED_URL = "https://index.golang.org/index"
DEFAULT_BATCH_LIMIT = 2000
MIN_BATCH_LIMIT = 2
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
ZERO_SINCE_TIMESTAMP = "0001-01-01T00:00:00Z"
FEED_PATH_FIELD = "Path"
FEED_VERSION_FIELD = "Version"
FEED_TIMESTAMP_FIELD = "Timestamp"
NANOS_PER_SECOND = 1_000_000_000
STORED_FRACTION_DIGITS = 9
UP_TO_DATE_MESSAGE = "Index is up-to-date"
EXIT_CODE_CANCELLED = 130
SETTINGS_FILE_KEYS = (
    "db_path",
    "feed_url",
    "batch_limit",
    "request_timeout_seconds",
)
