"""Modsync CLI entry points.

This module exposes the ``sync`` and ``status`` commands.
It maps argparse commands onto the sync driver and index store.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from types import FrameType
from typing import Any, Iterator, Sequence

from core.config import SyncConfig, parse_batch_limit, parse_feed_url, parse_timeout
from core.constants import EXIT_CODE_CANCELLED, UP_TO_DATE_MESSAGE
from core.errors import SyncError
from core.types import SyncState
from ingest.sync_driver import synchronize_index
from ingest.sync_progress import SyncProgressReport, format_progress_report
from store.cursor_store import read_last_record
from store.index_store import count_index_rows, open_index_database


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="modsync", description="Mirror the module index into a local SQLite database"
    )
    parser.add_argument("--db", help="Override MODSYNC_DB_PATH for this command")
    parser.add_argument("--config", help="YAML settings file layered over the environment")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_sync_command(subparsers)
    _add_status_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the modsync CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        if args.command == "sync":
            return _run_sync_command(config, args)
        if args.command == "status":
            return _run_status_command(config)
    except SyncError as error:
        stage = f" during {error.stage}" if error.stage else ""
        print(f"modsync: {args.command} failed{stage}: {error}", file=sys.stderr)
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _add_sync_command(subparsers: Any) -> None:
    sync_parser = subparsers.add_parser("sync", help="Fetch new feed records into the index")
    sync_parser.add_argument("--feed-url", help="Override MODSYNC_FEED_URL")
    sync_parser.add_argument("--limit", help="Records requested per feed call")
    sync_parser.add_argument("--timeout", help="Per-request timeout in seconds")
    sync_parser.add_argument(
        "--quiet", action="store_true", help="Do not print per-batch progress tables"
    )


def _add_status_command(subparsers: Any) -> None:
    subparsers.add_parser("status", help="Show the resume cursor and row counts")


def _build_config(args: argparse.Namespace) -> SyncConfig:
    """Resolve config from env, optional settings file, and CLI overrides."""
    config = SyncConfig.from_env()
    if args.config:
        config = SyncConfig.from_file(args.config, base=config)
    if args.db:
        config = replace(config, db_path=Path(args.db).expanduser())
    if getattr(args, "feed_url", None):
        config = replace(config, feed_url=parse_feed_url(args.feed_url, "--feed-url"))
    if getattr(args, "limit", None):
        config = replace(config, batch_limit=parse_batch_limit(args.limit, "--limit"))
    if getattr(args, "timeout", None):
        config = replace(
            config, request_timeout_seconds=parse_timeout(args.timeout, "--timeout")
        )
    return config


def _run_sync_command(config: SyncConfig, args: argparse.Namespace) -> int:
    """Handle sync command.

    Args:
        config: Resolved runtime configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    cancel_event = threading.Event()
    progress_callback = None if args.quiet else _print_progress
    with _cancel_on_signals(cancel_event):
        result = synchronize_index(
            config,
            cancel_event=cancel_event,
            progress_callback=progress_callback,
        )
    for anomaly in result.anomalies:
        print(f"BUG: index: {anomaly.describe()}", file=sys.stderr)
    if result.state is SyncState.CANCELLED:
        print(
            f"Sync cancelled after {result.batches_committed} batches; "
            "rerun to resume from the last commit.",
            file=sys.stderr,
        )
        return EXIT_CODE_CANCELLED
    print(UP_TO_DATE_MESSAGE)
    return 0


def _run_status_command(config: SyncConfig) -> int:
    """Handle status command.

    Args:
        config: Resolved runtime configuration.

    Returns:
        Exit code.
    """
    connection = open_index_database(config.db_path)
    try:
        cursor = read_last_record(connection)
        counts = count_index_rows(connection)
    finally:
        connection.close()
    print(f"database\t{config.db_path}")
    print(f"paths\t{counts.paths}")
    print(f"versions\t{counts.versions}")
    print(f"cursor\t{cursor.debug_string() if cursor else '-'}")
    return 0


def _print_progress(report: SyncProgressReport) -> None:
    print(format_progress_report(report) + "\n", file=sys.stderr)


@contextmanager
def _cancel_on_signals(cancel_event: threading.Event) -> Iterator[None]:
    """Set the cancel event on SIGINT/SIGTERM so the loop stops between batches."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handle(signum: int, frame: FrameType | None) -> None:
        cancel_event.set()

    previous = {
        signum: signal.signal(signum, _handle) for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
