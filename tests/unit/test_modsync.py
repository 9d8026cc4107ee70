"""Unit tests for the public SDK surface."""

from __future__ import annotations

from pathlib import Path

import modsync
from tests.feed_fixtures import ScriptedFeed, record


def test_public_surface_exports_sync_entry_point() -> None:
    """The SDK module should re-export everything it lists."""
    missing = [name for name in modsync.__all__ if not hasattr(modsync, name)]

    assert missing == []


def test_synchronize_index_through_sdk(tmp_path: Path) -> None:
    """Library users can run a sync through the SDK import path."""
    config = modsync.SyncConfig(
        db_path=tmp_path / "index.db",
        feed_url="https://index.example.test/index",
        batch_limit=100,
        request_timeout_seconds=1.0,
    )
    only = record("example.com/a", "v1.0.0", "2020-01-01T00:00:00Z")
    feed = ScriptedFeed([[only], [only]])

    result = modsync.synchronize_index(config, feed_client=feed)  # type: ignore[arg-type]

    assert result.state is modsync.SyncState.DONE and result.cursor == only
