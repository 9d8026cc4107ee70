"""Module index feed client.

This module issues paginated reads against the index over HTTP and
decodes the concatenated JSON object stream into typed feed records.
Failures are raised once; retry decisions belong to the caller.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from core.config import SyncConfig
from core.constants import (
    FEED_PATH_FIELD,
    FEED_TIMESTAMP_FIELD,
    FEED_VERSION_FIELD,
    ZERO_SINCE_TIMESTAMP,
)
from core.errors import FeedDecodeError, FeedTransportError
from core.timestamps import FeedTimestamp
from core.types import FeedRecord

_DECODER = json.JSONDecoder()
_WHITESPACE = " \t\r\n"


class FeedClient:
    """HTTP client for the module index feed.

    The client owns one ``httpx.Client`` for connection reuse across
    batches. Pass ``http_client`` to inject a preconfigured client, for
    example one built on ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        feed_url: str,
        timeout_seconds: float,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._feed_url = feed_url
        self._timeout = timeout_seconds
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.Client()

    @classmethod
    def from_config(cls, config: SyncConfig) -> "FeedClient":
        """Build a client from runtime configuration."""
        return cls(config.feed_url, config.request_timeout_seconds)

    def fetch(self, since: FeedTimestamp | None, limit: int) -> list[FeedRecord]:
        """Fetch up to ``limit`` records starting at ``since`` inclusive.

        Args:
            since: Cursor timestamp, or None to start from the oldest record.
            limit: Maximum number of records the feed should return.

        Returns:
            Records in feed order.

        Raises:
            FeedTransportError: On network failure, timeout, or non-2xx status.
            FeedDecodeError: If any element of the response fails to decode.
        """
        params = build_query_params(since, limit)
        try:
            response = self._http.get(self._feed_url, params=params, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException as error:
            raise FeedTransportError(
                f"Feed request to {self._feed_url} timed out after {self._timeout}s "
                f"(since={params['since']}). Rerun sync to resume from the last commit."
            ) from error
        except httpx.HTTPStatusError as error:
            raise FeedTransportError(
                f"Feed request to {self._feed_url} failed with HTTP "
                f"{error.response.status_code} (since={params['since']}). "
                "Rerun sync to resume from the last commit."
            ) from error
        except httpx.HTTPError as error:
            raise FeedTransportError(
                f"Feed request to {self._feed_url} failed: {error}. "
                "Check network connectivity and rerun sync."
            ) from error
        return decode_feed_stream(response.text)

    def close(self) -> None:
        """Close the underlying HTTP client when this instance created it."""
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "FeedClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_query_params(since: FeedTimestamp | None, limit: int) -> dict[str, str]:
    """Build ``since``/``limit`` query parameters for one feed call."""
    since_text = since.to_rfc3339_nano() if since is not None else ZERO_SINCE_TIMESTAMP
    params = {"since": since_text}
    if limit > 0:
        params["limit"] = str(limit)
    return params


def decode_feed_stream(body: str) -> list[FeedRecord]:
    """Decode a stream of concatenated JSON objects into feed records.

    Objects are usually newline-delimited, but any whitespace between
    them is accepted.

    Args:
        body: Response body text.

    Returns:
        Decoded records in stream order.

    Raises:
        FeedDecodeError: If an element is not valid JSON or lacks fields.
    """
    records: list[FeedRecord] = []
    position = _skip_whitespace(body, 0)
    while position < len(body):
        try:
            payload, position = _DECODER.raw_decode(body, position)
        except json.JSONDecodeError as error:
            raise FeedDecodeError(
                f"Failed to decode feed element {len(records) + 1}: {error.msg} "
                f"at offset {error.pos}. The feed format may have changed."
            ) from error
        records.append(_parse_record(payload, len(records) + 1))
        position = _skip_whitespace(body, position)
    return records


def _parse_record(payload: Any, element_number: int) -> FeedRecord:
    if not isinstance(payload, dict):
        raise FeedDecodeError(
            f"Invalid feed element {element_number}: expected JSON object, "
            f"got {type(payload).__name__}."
        )
    path = payload.get(FEED_PATH_FIELD)
    version = payload.get(FEED_VERSION_FIELD)
    timestamp_text = payload.get(FEED_TIMESTAMP_FIELD)
    if not isinstance(path, str) or not isinstance(version, str):
        raise FeedDecodeError(
            f"Invalid feed element {element_number}: "
            f"'{FEED_PATH_FIELD}' and '{FEED_VERSION_FIELD}' must be strings."
        )
    if not isinstance(timestamp_text, str):
        raise FeedDecodeError(
            f"Invalid feed element {element_number}: '{FEED_TIMESTAMP_FIELD}' must be a string."
        )
    try:
        timestamp = FeedTimestamp.parse(timestamp_text)
    except ValueError as error:
        raise FeedDecodeError(f"Invalid feed element {element_number}: {error}.") from error
    return FeedRecord(path=path, version=version, timestamp=timestamp)


def _skip_whitespace(body: str, position: int) -> int:
    while position < len(body) and body[position] in _WHITESPACE:
        position += 1
    return position
