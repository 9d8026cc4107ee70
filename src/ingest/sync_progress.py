"""Sync progress and ETA estimation.

This module turns accumulated counters into progress reports. The
estimate is pure arithmetic over (elapsed, covered, open) spans; the
tracker only accumulates spans and emits log events.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Sequence

from core.logging_config import get_logger
from core.types import FeedRecord

_LOGGER = get_logger(__name__)
_ZERO = timedelta(0)


@dataclass(frozen=True)
class SyncProgressReport:
    """Point-in-time view of sync progress.

    Attributes:
        elapsed: Wall-clock time since the run started.
        target: Wall-clock now; the feed is caught up once the cursor reaches it.
        current: Cursor timestamp.
        covered: Feed time imported during this run.
        open_span: Feed time between the cursor and ``target``.
        remaining: Estimated wall-clock time to catch up, when known.
    """

    elapsed: timedelta
    target: datetime
    current: datetime
    covered: timedelta
    open_span: timedelta
    remaining: timedelta | None

    @property
    def eta(self) -> datetime | None:
        """Return the estimated completion time, when known."""
        if self.remaining is None:
            return None
        return self.target + self.remaining

    @property
    def covered_hours_per_minute(self) -> float | None:
        """Return feed hours imported per wall-clock minute, when known."""
        elapsed_minutes = self.elapsed.total_seconds() / 60
        if self.remaining is None or elapsed_minutes <= 0:
            return None
        return (self.covered.total_seconds() / 3600) / elapsed_minutes


def estimate_remaining(
    elapsed: timedelta,
    covered: timedelta,
    open_span: timedelta,
) -> timedelta | None:
    """Estimate remaining wall-clock time from the observed import rate.

    Args:
        elapsed: Wall-clock time spent so far.
        covered: Feed time imported so far.
        open_span: Feed time still to import.

    Returns:
        ``open_span * elapsed / covered``, or None when nothing is covered yet.
    """
    if covered <= _ZERO:
        return None
    return max(_ZERO, open_span) * (elapsed / covered)


def covered_by_batch(previous_cursor: FeedRecord | None, batch: Sequence[FeedRecord]) -> timedelta:
    """Return the feed time a committed batch covers.

    A first batch into an empty index covers its own first-to-last span;
    later batches cover the span from the previous cursor to their last record.
    """
    if not batch:
        return _ZERO
    start = previous_cursor.timestamp if previous_cursor is not None else batch[0].timestamp
    return max(_ZERO, batch[-1].timestamp.since(start))


def build_progress_report(
    elapsed: timedelta,
    target: datetime,
    cursor: FeedRecord,
    covered: timedelta,
) -> SyncProgressReport:
    """Build a progress report from counters and the current cursor."""
    current = cursor.timestamp.to_datetime()
    open_span = max(_ZERO, target - current)
    return SyncProgressReport(
        elapsed=elapsed,
        target=target,
        current=current,
        covered=covered,
        open_span=open_span,
        remaining=estimate_remaining(elapsed, covered, open_span),
    )


def format_progress_report(report: SyncProgressReport) -> str:
    """Render a report as an aligned, human-readable table."""
    rows = [
        ("Duration", _format_span(report.elapsed)),
        ("Target", _format_moment(report.target)),
        ("Current", _format_moment(report.current)),
        ("Hours done", str(int(report.covered.total_seconds() // 3600))),
        ("Hours open", str(int(report.open_span.total_seconds() // 3600))),
    ]
    if report.remaining is not None and report.eta is not None:
        rows.append(("Remaining", _format_span(report.remaining)))
        rows.append(("ETA", _format_moment(report.eta)))
    speed = report.covered_hours_per_minute
    if speed is not None:
        rows.append(("Speed", f"{speed:.2f} hours/minute"))
    width = max(len(label) for label, _ in rows)
    return "\n".join(f"{label.ljust(width)} {value}" for label, value in rows)


@dataclass
class SyncProgressTracker:
    """Accumulate covered feed time and emit progress events."""

    run_started_at: float = field(default_factory=time.monotonic)
    covered: timedelta = _ZERO

    def record_batch(self, previous_cursor: FeedRecord | None, batch: Sequence[FeedRecord]) -> None:
        """Add the span covered by a committed batch."""
        self.covered += covered_by_batch(previous_cursor, batch)

    def report(self, cursor: FeedRecord, now: datetime | None = None) -> SyncProgressReport:
        """Build and log a progress report for the current cursor."""
        elapsed = timedelta(seconds=max(0.0, time.monotonic() - self.run_started_at))
        target = now if now is not None else datetime.now(timezone.utc)
        report = build_progress_report(elapsed, target, cursor, self.covered)
        _LOGGER.info(
            "sync_progress",
            elapsed_seconds=round(report.elapsed.total_seconds(), 3),
            current=report.current.isoformat(),
            covered_hours=round(report.covered.total_seconds() / 3600, 3),
            open_hours=round(report.open_span.total_seconds() / 3600, 3),
            remaining_seconds=_round_seconds(report.remaining),
        )
        return report


def _round_seconds(span: timedelta | None) -> float | None:
    if span is None:
        return None
    return round(span.total_seconds(), 3)


def _format_span(span: timedelta) -> str:
    return str(timedelta(seconds=round(span.total_seconds())))


def _format_moment(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
