"""Modsync exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each sync stage raises a specific error type for debuggability.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all modsync failures.

    Attributes:
        stage: Driver stage that was active when the error surfaced.
    """

    stage: str | None = None


class SyncConfigError(SyncError):
    """Raised for invalid runtime configuration."""


class FeedTransportError(SyncError):
    """Raised for network, timeout, and HTTP status failures against the feed."""


class FeedDecodeError(SyncError):
    """Raised when a feed payload element cannot be decoded into a record."""


class SyncStorageError(SyncError):
    """Raised for index database, transaction, and constraint failures."""


class SyncProtocolError(SyncError):
    """Raised when a feed batch would move the cursor backwards."""
