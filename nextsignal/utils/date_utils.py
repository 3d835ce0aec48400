"""Timestamp utilities for NextSignal.

Store documents carry timestamps in several shapes (aware or naive datetimes,
ISO 8601 strings, epoch milliseconds). Always route them through
parse_timestamp() before comparing them.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser

# Epoch values above this are treated as milliseconds rather than seconds
_EPOCH_MS_THRESHOLD = 10_000_000_000


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize any supported timestamp representation to an aware UTC datetime.

    Args:
        value: datetime, ISO 8601 string, or epoch seconds/milliseconds.

    Returns:
        Aware UTC datetime, or None if the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > _EPOCH_MS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            return ensure_utc(dateutil_parser.isoparse(value.strip()))
        except (ValueError, OverflowError):
            pass
        try:
            return ensure_utc(dateutil_parser.parse(value.strip()))
        except (ValueError, OverflowError, TypeError):
            return None
    return None


def to_iso(value: datetime) -> str:
    """Render a datetime as an ISO 8601 UTC string."""
    return ensure_utc(value).isoformat()


def cutoff_time(window_seconds: float, now: Optional[datetime] = None) -> datetime:
    """Return ``now - window_seconds`` as an aware UTC datetime."""
    reference = ensure_utc(now) if now is not None else utc_now()
    return reference - timedelta(seconds=window_seconds)


def format_for_prompt(value: datetime) -> str:
    """Human-readable timestamp used inside LLM prompts."""
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M UTC")
