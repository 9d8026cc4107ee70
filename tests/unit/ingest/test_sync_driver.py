"""Unit tests for the sync driver loop."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

import pytest

from core.config import SyncConfig
from core.errors import (
    FeedDecodeError,
    FeedTransportError,
    SyncProtocolError,
    SyncStorageError,
)
from core.types import SyncState
from ingest.sync_driver import IndexSyncRunner, synchronize_index
from store.cursor_store import read_last_record
from store.index_store import count_index_rows, open_index_database
from tests.feed_fixtures import ScriptedFeed, record

_P1_V1 = record("example.com/p1", "v1.0.0", "2020-01-01T00:00:01Z")
_P1_V2 = record("example.com/p1", "v1.0.1", "2020-01-01T00:00:02Z")
_A = record("example.com/a", "v1.0.0", "2020-01-01T00:00:01Z")
_B = record("example.com/b", "v1.0.0", "2020-01-01T00:00:02Z")
_C = record("example.com/c", "v1.0.0", "2020-01-01T00:00:03Z")
_D = record("example.com/d", "v1.0.0", "2020-01-01T00:00:04Z")
_E = record("example.com/e", "v1.0.0", "2020-01-01T00:00:05Z")


def _config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        db_path=tmp_path / "index.db",
        feed_url="https://index.example.test/index",
        batch_limit=2000,
        request_timeout_seconds=5.0,
    )


def _runner(connection: sqlite3.Connection, feed: ScriptedFeed, tmp_path: Path, **kwargs):
    return IndexSyncRunner(_config(tmp_path), connection, feed, **kwargs)  # type: ignore[arg-type]


def _stored_keys(connection: sqlite3.Connection) -> list[tuple[str, str]]:
    rows = connection.execute(
        "SELECT p.path, v.version FROM versions AS v JOIN paths AS p ON p.id = v.path_id "
        "ORDER BY v.timestamp"
    ).fetchall()
    return [(path, version) for path, version in rows]


def test_first_run_stops_when_only_overlap_returns(tmp_path: Path) -> None:
    """Empty store, one batch of two, then only the overlap record: two rows."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[_P1_V1, _P1_V2], [_P1_V2]])

    result = _runner(connection, feed, tmp_path).run()

    assert result.state is SyncState.DONE
    assert feed.calls == [(None, 2000), (_P1_V2.timestamp, 2000)]
    assert count_index_rows(connection).versions == 2
    assert count_index_rows(connection).paths == 1


def test_overlap_between_batches_is_not_duplicated(tmp_path: Path) -> None:
    """[A,B,C] then [C,D,E] should store exactly A..E."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[_A, _B, _C], [_C, _D, _E], [_E]])

    result = _runner(connection, feed, tmp_path).run()

    assert _stored_keys(connection) == [
        (item.path, item.version) for item in (_A, _B, _C, _D, _E)
    ]
    assert result.records_written == 5 and result.batches_committed == 2


def test_empty_feed_terminates_without_writes(tmp_path: Path) -> None:
    """An empty first response ends the loop immediately."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[]])

    result = _runner(connection, feed, tmp_path).run()

    assert result.state is SyncState.DONE and result.cursor is None and len(feed.calls) == 1


def test_second_run_resumes_from_stored_cursor_and_writes_nothing(tmp_path: Path) -> None:
    """Replaying with no new feed data should insert zero rows."""
    connection = open_index_database(tmp_path / "index.db")
    _runner(connection, ScriptedFeed([[_A, _B], [_B]]), tmp_path).run()
    replay_feed = ScriptedFeed([[_B]])

    result = _runner(connection, replay_feed, tmp_path).run()

    assert replay_feed.calls == [(_B.timestamp, 2000)]
    assert result.records_written == 0 and count_index_rows(connection).versions == 2


def test_protocol_anomaly_keeps_full_batch_and_continues(tmp_path: Path) -> None:
    """A mismatched first record is flagged, inserted, and the run completes."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[_A, _B], [_C, _D], [_D]])

    result = _runner(connection, feed, tmp_path).run()

    assert result.state is SyncState.DONE
    assert len(result.anomalies) == 1 and result.anomalies[0].received == _C
    assert count_index_rows(connection).versions == 4


def test_cursor_is_monotonic_across_batches(tmp_path: Path) -> None:
    """Each fetch's since should be at least the previous one."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[_A, _B], [_B, _C], [_C, _D, _E], [_E]])

    _runner(connection, feed, tmp_path).run()
    since_values = [since for since, _ in feed.calls[1:]]

    assert since_values == sorted(since_values)
    assert since_values == [_B.timestamp, _C.timestamp, _E.timestamp]


def test_batch_ending_before_cursor_fails_run(tmp_path: Path) -> None:
    """A batch that would move the cursor backwards is fatal."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[_C, _D], [_A, _B]])
    runner = _runner(connection, feed, tmp_path)

    with pytest.raises(SyncProtocolError) as error_info:
        runner.run()

    assert error_info.value.stage == "merging" and runner.state is SyncState.FAILED
    assert count_index_rows(connection).versions == 2


def test_transport_error_fails_run_and_keeps_committed_batches(tmp_path: Path) -> None:
    """A transport failure aborts the run after earlier commits are durable."""
    connection = open_index_database(tmp_path / "index.db")
    feed = ScriptedFeed([[_A, _B], FeedTransportError("read timed out")])
    runner = _runner(connection, feed, tmp_path)

    with pytest.raises(FeedTransportError) as error_info:
        runner.run()

    assert error_info.value.stage == "polling" and runner.state is SyncState.FAILED
    assert read_last_record(connection) == _B


def test_decode_error_fails_run(tmp_path: Path) -> None:
    """Decode failures propagate unchanged with the failing stage."""
    connection = open_index_database(tmp_path / "index.db")
    runner = _runner(connection, ScriptedFeed([FeedDecodeError("bad element")]), tmp_path)

    with pytest.raises(FeedDecodeError):
        runner.run()

    assert runner.state is SyncState.FAILED


def test_storage_failure_fails_run_in_persisting_stage(tmp_path: Path) -> None:
    """A failing batch write aborts the run with nothing from that batch kept."""
    connection = open_index_database(tmp_path / "index.db")
    connection.execute(
        "CREATE TRIGGER reject_version BEFORE INSERT ON versions "
        "WHEN NEW.version = 'v9.9.9' BEGIN SELECT RAISE(ABORT, 'rejected'); END"
    )
    bad = record("example.com/z", "v9.9.9", "2020-01-01T00:00:06Z")
    feed = ScriptedFeed([[_A, _B], [_B, _C, bad]])
    runner = _runner(connection, feed, tmp_path)

    with pytest.raises(SyncStorageError) as error_info:
        runner.run()

    assert error_info.value.stage == "persisting"
    assert _stored_keys(connection) == [(_A.path, _A.version), (_B.path, _B.version)]


def test_cancel_event_stops_between_batches(tmp_path: Path) -> None:
    """A set cancel event stops the loop before the next fetch."""
    connection = open_index_database(tmp_path / "index.db")
    cancel_event = threading.Event()
    feed = ScriptedFeed([[_A, _B], [_B, _C], [_C]])
    reports = []

    def cancel_after_first_batch(report) -> None:
        reports.append(report)
        cancel_event.set()

    result = _runner(
        connection,
        feed,
        tmp_path,
        cancel_event=cancel_event,
        progress_callback=cancel_after_first_batch,
    ).run()

    assert result.state is SyncState.CANCELLED and len(feed.calls) == 1
    assert result.cursor == _B and len(reports) == 1


def test_synchronize_index_opens_and_closes_database(tmp_path: Path) -> None:
    """The top-level helper should persist into the configured database."""
    config = _config(tmp_path)
    feed = ScriptedFeed([[_A], [_A]])

    result = synchronize_index(config, feed_client=feed)  # type: ignore[arg-type]

    connection = open_index_database(config.db_path)
    assert result.state is SyncState.DONE and read_last_record(connection) == _A
