"""Public SDK surface for modsync.

This module provides a stable import path for library users.
It re-exports the sync entry point and typed result models.
"""

from __future__ import annotations

from core.config import SyncConfig
from core.errors import (
    FeedDecodeError,
    FeedTransportError,
    SyncConfigError,
    SyncError,
    SyncProtocolError,
    SyncStorageError,
)
from core.timestamps import FeedTimestamp
from core.types import FeedRecord, ProtocolAnomaly, SyncResult, SyncState
from ingest.feed_client import FeedClient
from ingest.sync_driver import IndexSyncRunner, synchronize_index
from ingest.sync_progress import SyncProgressReport, format_progress_report

__all__ = [
    "FeedClient",
    "FeedDecodeError",
    "FeedRecord",
    "FeedTimestamp",
    "FeedTransportError",
    "IndexSyncRunner",
    "ProtocolAnomaly",
    "SyncConfig",
    "SyncConfigError",
    "SyncError",
    "SyncProgressReport",
    "SyncProtocolError",
    "SyncResult",
    "SyncState",
    "SyncStorageError",
    "format_progress_report",
    "synchronize_index",
]
