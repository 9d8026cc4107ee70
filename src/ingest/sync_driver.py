"""Sync driver for the module index mirror.

This module runs the fetch, merge, persist loop until the feed reports
no new data. The cursor is threaded through the loop as an explicit
value and only advances after a batch commits.
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Callable, Sequence, TypeVar

from core.config import SyncConfig
from core.errors import SyncError, SyncProtocolError
from core.logging_config import get_logger
from core.types import FeedRecord, ProtocolAnomaly, ReconcileResult, SyncResult, SyncState
from ingest.batch_merger import DEFAULT_OVERLAP_POLICY, OverlapPolicy
from ingest.feed_client import FeedClient
from ingest.sync_progress import SyncProgressReport, SyncProgressTracker
from store.cursor_store import read_last_record
from store.index_store import open_index_database
from store.version_writer import write_batch

_LOGGER = get_logger(__name__)

ProgressCallback = Callable[[SyncProgressReport], None]
_T = TypeVar("_T")


class IndexSyncRunner:
    """Single-threaded runner for one sync pass over the feed.

    The runner holds the database connection for the whole run and
    assumes it is the only writer. Fatal errors leave the runner in
    ``FAILED`` with the failing stage recorded on the raised error.
    """

    def __init__(
        self,
        config: SyncConfig,
        connection: sqlite3.Connection,
        feed_client: FeedClient,
        policy: OverlapPolicy = DEFAULT_OVERLAP_POLICY,
        cancel_event: threading.Event | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._config = config
        self._connection = connection
        self._feed = feed_client
        self._policy = policy
        self._cancel_event = cancel_event
        self._progress_callback = progress_callback
        self._state = SyncState.INIT

    @property
    def state(self) -> SyncState:
        """Return the current driver state."""
        return self._state

    def run(self) -> SyncResult:
        """Synchronize until caught up, cancelled, or failed.

        Returns:
            Result for a run that ended in ``DONE`` or ``CANCELLED``.

        Raises:
            FeedTransportError: If a feed request fails or times out.
            FeedDecodeError: If a feed response cannot be decoded.
            SyncStorageError: If reading the cursor or writing a batch fails.
            SyncProtocolError: If a batch would move the cursor backwards.
        """
        self._state = SyncState.INIT
        cursor = self._stage(read_last_record, self._connection)
        _LOGGER.info(
            "sync_started",
            feed_url=self._config.feed_url,
            batch_limit=self._config.batch_limit,
            cursor=cursor.debug_string() if cursor else None,
        )
        tracker = SyncProgressTracker()
        anomalies: list[ProtocolAnomaly] = []
        batches_committed = 0
        records_written = 0
        while True:
            if self._cancel_event is not None and self._cancel_event.is_set():
                self._state = SyncState.CANCELLED
                _LOGGER.info("sync_cancelled", batches_committed=batches_committed)
                break
            self._state = SyncState.POLLING
            since = cursor.timestamp if cursor is not None else None
            fetched = self._stage(self._feed.fetch, since, self._config.batch_limit)
            _LOGGER.debug("feed_batch_fetched", record_count=len(fetched))
            self._state = SyncState.MERGING
            merged = self._stage(self._merge, cursor, fetched)
            if merged.anomaly is not None:
                anomalies.append(merged.anomaly)
                _LOGGER.warning("protocol_anomaly", detail=merged.anomaly.describe())
            if merged.caught_up:
                self._state = SyncState.DONE
                break
            self._state = SyncState.PERSISTING
            batch = merged.records_to_insert
            written = self._stage(write_batch, self._connection, batch)
            batches_committed += 1
            records_written += written
            tracker.record_batch(cursor, batch)
            cursor = batch[-1]
            _LOGGER.info(
                "sync_batch_committed",
                written=written,
                cursor=cursor.debug_string(),
            )
            report = tracker.report(cursor)
            if self._progress_callback is not None:
                self._progress_callback(report)
        _LOGGER.info(
            "sync_completed",
            state=self._state.value,
            batches_committed=batches_committed,
            records_written=records_written,
            anomalies=len(anomalies),
        )
        return SyncResult(
            state=self._state,
            batches_committed=batches_committed,
            records_written=records_written,
            cursor=cursor,
            anomalies=tuple(anomalies),
        )

    def _merge(self, cursor: FeedRecord | None, fetched: Sequence[FeedRecord]) -> ReconcileResult:
        merged = self._policy.reconcile(cursor, fetched)
        if cursor is not None and merged.records_to_insert:
            last_record = merged.records_to_insert[-1]
            if last_record.timestamp < cursor.timestamp:
                raise SyncProtocolError(
                    f"Feed batch ends at {last_record.debug_string()}, before the cursor "
                    f"{cursor.debug_string()}. Refusing to move the cursor backwards."
                )
        return merged

    def _stage(self, operation: Callable[..., _T], *args: object) -> _T:
        try:
            return operation(*args)
        except SyncError as error:
            error.stage = self._state.value
            failed_stage = self._state
            self._state = SyncState.FAILED
            _LOGGER.error("sync_failed", stage=failed_stage.value, error=str(error))
            raise


def synchronize_index(
    config: SyncConfig,
    feed_client: FeedClient | None = None,
    cancel_event: threading.Event | None = None,
    progress_callback: ProgressCallback | None = None,
) -> SyncResult:
    """Mirror new feed records into the index database.

    Args:
        config: Runtime configuration.
        feed_client: Optional client override, built from config when omitted.
        cancel_event: Optional event checked between batches.
        progress_callback: Optional receiver for per-batch progress reports.

    Returns:
        Result of the completed or cancelled run.

    Raises:
        SyncError: If any stage fails; committed batches stay in the database.
    """
    connection = open_index_database(config.db_path)
    client = feed_client if feed_client is not None else FeedClient.from_config(config)
    try:
        runner = IndexSyncRunner(
            config,
            connection,
            client,
            cancel_event=cancel_event,
            progress_callback=progress_callback,
        )
        return runner.run()
    finally:
        if feed_client is None:
            client.close()
        connection.close()
