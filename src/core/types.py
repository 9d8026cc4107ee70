"""Shared typed models.

This module defines immutable data models used by the feed client,
merger, store, and sync driver to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.timestamps import FeedTimestamp


@dataclass(frozen=True)
class FeedRecord:
    """One release event from the module index feed.

    Attributes:
        path: Module path, e.g. ``golang.org/x/mod``.
        version: Version string as reported by the feed.
        timestamp: Time the index recorded the release.
    """

    path: str
    version: str
    timestamp: FeedTimestamp

    def debug_string(self) -> str:
        """Render ``path@version@timestamp`` for log and error messages."""
        return f"{self.path}@{self.version}@{self.timestamp.to_rfc3339_nano()}"


@dataclass(frozen=True)
class ProtocolAnomaly:
    """Overlap mismatch at a batch boundary.

    Attributes:
        expected: Cursor record the batch was expected to start with.
        received: First record the feed actually returned.
    """

    expected: FeedRecord
    received: FeedRecord

    def describe(self) -> str:
        """Return a one-line operator-facing description."""
        return (
            f"expected list to start with {self.expected.debug_string()} "
            f"but got {self.received.debug_string()}"
        )


@dataclass(frozen=True)
class ReconcileResult:
    """Batch merger output.

    Attributes:
        records_to_insert: Records left after removing the expected overlap.
        anomaly: Overlap mismatch, when the batch did not start at the cursor.
    """

    records_to_insert: tuple[FeedRecord, ...]
    anomaly: ProtocolAnomaly | None = None

    @property
    def protocol_violation(self) -> bool:
        """Return whether the batch broke the inclusive-overlap convention."""
        return self.anomaly is not None

    @property
    def caught_up(self) -> bool:
        """Return whether the merge signals that the feed has no new data."""
        return not self.records_to_insert


class SyncState(str, Enum):
    """Sync driver states."""

    INIT = "init"
    POLLING = "polling"
    MERGING = "merging"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one sync run.

    Attributes:
        state: Terminal state the run ended in.
        batches_committed: Number of batches durably written.
        records_written: Version rows written across all batches.
        cursor: Resume point after the run, or None for an empty index.
        anomalies: Overlap mismatches observed during the run.
    """

    state: SyncState
    batches_committed: int
    records_written: int
    cursor: FeedRecord | None
    anomalies: tuple[ProtocolAnomaly, ...] = ()
