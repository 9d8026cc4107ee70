"""Nanosecond-precision feed timestamps.

The module index reports RFC3339 timestamps with up to nine fractional
digits, which is finer than ``datetime`` can hold. Cursor matching needs
exact equality, so timestamps are kept as integer epoch nanoseconds and
only converted to ``datetime`` for display and span arithmetic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from core.constants import NANOS_PER_SECOND, STORED_FRACTION_DIGITS

_RFC3339_PATTERN = re.compile(
    r"^(?P<seconds>\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, order=True)
class FeedTimestamp:
    """Ordered UTC instant with nanosecond resolution.

    Attributes:
        epoch_nanos: Nanoseconds since the Unix epoch, UTC.
    """

    epoch_nanos: int

    @classmethod
    def parse(cls, text: str) -> "FeedTimestamp":
        """Parse an RFC3339 timestamp with optional fractional seconds.

        Args:
            text: Timestamp such as ``2019-04-10T19:08:52.997264Z``.

        Returns:
            Parsed timestamp.

        Raises:
            ValueError: If text is not a valid RFC3339 timestamp.
        """
        match = _RFC3339_PATTERN.match(text)
        if match is None:
            raise ValueError(f"not an RFC3339 timestamp: {text!r}")
        offset = match.group("offset")
        offset_text = "+00:00" if offset in ("Z", "z") else offset
        whole = datetime.fromisoformat(match.group("seconds").upper() + offset_text)
        fraction = (match.group("fraction") or "").ljust(STORED_FRACTION_DIGITS, "0")
        whole_seconds = (whole - _EPOCH) // timedelta(seconds=1)
        return cls(epoch_nanos=whole_seconds * NANOS_PER_SECOND + int(fraction))

    @classmethod
    def from_datetime(cls, moment: datetime) -> "FeedTimestamp":
        """Build a timestamp from an aware datetime."""
        if moment.tzinfo is None:
            raise ValueError("feed timestamps require a timezone-aware datetime")
        delta = moment - _EPOCH
        whole_seconds = delta // timedelta(seconds=1)
        micros = delta.microseconds
        return cls(epoch_nanos=whole_seconds * NANOS_PER_SECOND + micros * 1000)

    def to_datetime(self) -> datetime:
        """Return the UTC datetime, truncated to microseconds."""
        whole_seconds, nanos = divmod(self.epoch_nanos, NANOS_PER_SECOND)
        return _EPOCH + timedelta(seconds=whole_seconds, microseconds=nanos // 1000)

    def to_rfc3339_nano(self) -> str:
        """Format like Go's RFC3339Nano: UTC with trailing zeros trimmed."""
        seconds_text, fraction = self._split()
        fraction = fraction.rstrip("0")
        if not fraction:
            return f"{seconds_text}Z"
        return f"{seconds_text}.{fraction}Z"

    def to_storage_text(self) -> str:
        """Format with a fixed nine-digit fraction so text order matches time order."""
        seconds_text, fraction = self._split()
        return f"{seconds_text}.{fraction}Z"

    def since(self, earlier: "FeedTimestamp") -> timedelta:
        """Return the span from an earlier timestamp to this one."""
        return timedelta(microseconds=(self.epoch_nanos - earlier.epoch_nanos) / 1000)

    def _split(self) -> tuple[str, str]:
        whole_seconds, nanos = divmod(self.epoch_nanos, NANOS_PER_SECOND)
        moment = _EPOCH + timedelta(seconds=whole_seconds)
        seconds_text = (
            f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
            f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        )
        return seconds_text, f"{nanos:09d}"
