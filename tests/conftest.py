"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_MODSYNC_ENV_VARS = (
    "MODSYNC_DB_PATH",
    "MODSYNC_FEED_URL",
    "MODSYNC_BATCH_LIMIT",
    "MODSYNC_REQUEST_TIMEOUT",
)


def pytest_sessionstart() -> None:
    """Add src and the project root to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    for import_root in (project_root / "src", project_root):
        if str(import_root) not in sys.path:
            sys.path.insert(0, str(import_root))


@pytest.fixture(autouse=True)
def _isolate_modsync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host MODSYNC_* settings out of tests."""
    for name in _MODSYNC_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
