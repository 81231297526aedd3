"""
Utility functions for the Omada Controller API package.
"""

import time
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple, Union

from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_LOOKBACK = timedelta(days=1)
SLEEP_SLICE_SECONDS = 1.0


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_unix_seconds(value: Union[datetime, int, float]) -> int:
    """
    Convert a datetime (or an already numeric timestamp) to whole Unix seconds.

    Naive datetimes are treated as UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def resolve_window(
    start: Optional[datetime] = None, end: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """
    Fill in a missing time window.

    Args:
        start: Beginning of the window. Defaults to one day before `end`.
        end: End of the window. Defaults to now.

    Returns:
        Tuple of (start, end).
    """
    if end is None:
        end = utcnow()
    if start is None:
        start = end - DEFAULT_LOOKBACK
    return start, end


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convert a controller timestamp into an aware UTC datetime.

    The controller reports sample times as Unix seconds, and some records in
    milliseconds. Values above 1e11 are treated as milliseconds.

    Returns:
        The parsed datetime, or None if the value is missing or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    if ts > 1e11:
        ts = ts / 1000
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.debug(f"Timestamp out of range: {value!r}")
        return None


def isoformat_utc(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a trailing 'Z'."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def stoppable_sleep(
    duration: float,
    stop_event: threading.Event,
    slice_seconds: float = SLEEP_SLICE_SECONDS,
) -> bool:
    """
    Sleep for `duration` seconds in bounded slices, waking early on stop.

    Args:
        duration: Total number of seconds to sleep.
        stop_event: Event that aborts the sleep when set.
        slice_seconds: Longest single wait before re-checking the event.

    Returns:
        True if the sleep was interrupted by the stop event, False otherwise.
    """
    deadline = time.monotonic() + duration
    while not stop_event.is_set():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        stop_event.wait(min(slice_seconds, remaining))
    return True
