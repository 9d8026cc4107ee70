"""Runtime configuration model for modsync.

This module owns all environment variable and settings file parsing.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, cast
from urllib.parse import urlparse

import yaml

from core.constants import (
    DEFAULT_BATCH_LIMIT,
    DEFAULT_DB_PATH,
    DEFAULT_FEED_URL,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    MIN_BATCH_LIMIT,
    SETTINGS_FILE_KEYS,
)
from core.errors import SyncConfigError


@dataclass(frozen=True)
class SyncConfig:
    """Validated runtime configuration.

    Attributes:
        db_path: SQLite index database file.
        feed_url: Absolute https URL of the module index feed.
        batch_limit: Maximum records requested per feed call.
        request_timeout_seconds: Per-request timeout for feed calls.
    """

    db_path: Path
    feed_url: str
    batch_limit: int
    request_timeout_seconds: float

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            SyncConfigError: If environment values are invalid.
        """
        db_path_value = os.getenv("MODSYNC_DB_PATH", str(DEFAULT_DB_PATH))
        feed_url = os.getenv("MODSYNC_FEED_URL", DEFAULT_FEED_URL)
        batch_limit_value = os.getenv("MODSYNC_BATCH_LIMIT", str(DEFAULT_BATCH_LIMIT))
        timeout_value = os.getenv(
            "MODSYNC_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS)
        )
        return cls(
            db_path=Path(db_path_value).expanduser(),
            feed_url=parse_feed_url(feed_url, "MODSYNC_FEED_URL"),
            batch_limit=parse_batch_limit(batch_limit_value, "MODSYNC_BATCH_LIMIT"),
            request_timeout_seconds=parse_timeout(timeout_value, "MODSYNC_REQUEST_TIMEOUT"),
        )

    @classmethod
    def from_file(cls, settings_path: str, base: "SyncConfig | None" = None) -> "SyncConfig":
        """Layer a YAML settings file over a base config.

        Args:
            settings_path: Path to a YAML mapping of settings keys.
            base: Config to override, defaults to ``from_env()``.

        Returns:
            A validated config object.

        Raises:
            SyncConfigError: If the file is unreadable or holds invalid values.
        """
        config = base if base is not None else cls.from_env()
        settings = _load_settings_mapping(settings_path)
        if "db_path" in settings:
            config = replace(config, db_path=Path(str(settings["db_path"])).expanduser())
        if "feed_url" in settings:
            config = replace(config, feed_url=parse_feed_url(settings["feed_url"], "feed_url"))
        if "batch_limit" in settings:
            config = replace(
                config, batch_limit=parse_batch_limit(settings["batch_limit"], "batch_limit")
            )
        if "request_timeout_seconds" in settings:
            config = replace(
                config,
                request_timeout_seconds=parse_timeout(
                    settings["request_timeout_seconds"], "request_timeout_seconds"
                ),
            )
        return config


def parse_feed_url(raw_value: object, source: str) -> str:
    """Validate a feed URL.

    Args:
        raw_value: Raw URL value.
        source: Setting name used in error messages.

    Returns:
        URL without trailing slash.

    Raises:
        SyncConfigError: If the URL is not an absolute https URL.
    """
    url = str(raw_value).strip()
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise SyncConfigError(
            f"Invalid {source} value: expected an absolute https URL, got '{url}'. "
            "Point it at the module index, e.g. https://index.golang.org/index."
        )
    return url.rstrip("/")


def parse_batch_limit(raw_value: object, source: str) -> int:
    """Parse the per-fetch record limit.

    A limit of one can only ever return the overlap record, so the
    smallest accepted value is two.
    """
    try:
        limit = int(cast(str, raw_value))
    except (TypeError, ValueError) as error:
        raise SyncConfigError(
            f"Invalid {source} value: expected integer, got '{raw_value}'. "
            f"Set {source} to a number of at least {MIN_BATCH_LIMIT}."
        ) from error
    if limit < MIN_BATCH_LIMIT:
        raise SyncConfigError(
            f"Invalid {source} value: {limit} is below the minimum of {MIN_BATCH_LIMIT}. "
            "Each batch repeats the previous cursor record and needs room for new ones."
        )
    return limit


def parse_timeout(raw_value: object, source: str) -> float:
    """Parse a positive per-request timeout in seconds."""
    try:
        timeout = float(cast(str, raw_value))
    except (TypeError, ValueError) as error:
        raise SyncConfigError(
            f"Invalid {source} value: expected seconds, got '{raw_value}'. "
            f"Set {source} to a positive number."
        ) from error
    if timeout <= 0:
        raise SyncConfigError(
            f"Invalid {source} value: {timeout} is not positive. "
            f"Set {source} to a positive number."
        )
    return timeout


def _load_settings_mapping(settings_path: str) -> Mapping[str, object]:
    settings_file = Path(settings_path).expanduser().resolve()
    if not settings_file.exists():
        raise SyncConfigError(
            f"Settings file does not exist at {settings_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(settings_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise SyncConfigError(
            f"Failed to read settings at {settings_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise SyncConfigError(
            f"Failed to parse YAML settings at {settings_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise SyncConfigError(
            f"Invalid settings at {settings_file}: expected a mapping, "
            f"got {type(payload).__name__}."
        )
    unknown_keys = sorted(str(key) for key in payload if key not in SETTINGS_FILE_KEYS)
    if unknown_keys:
        raise SyncConfigError(
            f"Unknown settings keys {unknown_keys} in {settings_file}. "
            f"Supported keys: {', '.join(SETTINGS_FILE_KEYS)}."
        )
    return {str(key): value for key, value in payload.items()}
