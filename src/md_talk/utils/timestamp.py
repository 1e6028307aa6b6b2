"""Timestamp parsing and formatting utilities."""

import math
from datetime import datetime, timezone
from typing import Any, Optional

from ..config import EPOCH_MILLISECONDS_THRESHOLD


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse ISO timestamp handling 'Z' suffix.

    Handles log formats like 2024-12-01T10:00:30.123Z. Naive timestamps
    are taken to be UTC. Returns None on parse failure instead of raising.

    Args:
        timestamp_str: ISO format timestamp with optional Z suffix

    Returns:
        timezone-aware datetime, or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        dt = datetime.fromisoformat(timestamp_str.strip().replace('Z', '+00:00'))
    except (ValueError, AttributeError, TypeError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_epoch_milliseconds(value: Any) -> Optional[datetime]:
    """Convert Unix milliseconds to a UTC datetime.

    Returns None for non-numeric input or values out of range.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None

    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_epoch_seconds(value: Any) -> Optional[datetime]:
    """Convert Unix seconds to a UTC datetime.

    Values above the millisecond threshold are already milliseconds and
    are treated as such.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None

    if value > EPOCH_MILLISECONDS_THRESHOLD:
        return parse_epoch_milliseconds(value)
    return parse_epoch_milliseconds(value * 1000)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a log timestamp: ISO strings or Unix milliseconds."""
    if isinstance(value, str):
        return parse_iso_timestamp(value)
    return parse_epoch_milliseconds(value)


def format_timestamp_iso(dt: Optional[datetime]) -> str:
    """Format datetime as 'YYYY-MM-DDTHH:MM:SS.mmmZ' in UTC.

    Args:
        dt: datetime object to format

    Returns:
        Formatted string, or empty string if dt is None
    """
    if dt is None:
        return ""
    utc = dt.astimezone(timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc.microsecond // 1000:03d}Z"


def format_timestamp_date(dt: Optional[datetime]) -> str:
    """Format datetime as 'YYYY-MM-DD HH:MM' in UTC.

    Args:
        dt: datetime object to format

    Returns:
        Formatted string, or empty string if dt is None
    """
    if dt is None:
        return ""
    return dt.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M')
