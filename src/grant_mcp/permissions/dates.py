"""Time periods and timestamp/date conversion for permission display."""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

READABLE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class TimePeriod(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


TIME_PERIOD_TO_SECONDS = {
    TimePeriod.DAILY: 60 * 60 * 24,
    TimePeriod.WEEKLY: 60 * 60 * 24 * 7,
    TimePeriod.MONTHLY: 60 * 60 * 24 * 30,
}


def now_seconds() -> int:
    return int(time.time())


def timestamp_to_readable(timestamp: int) -> str:
    """Render a unix timestamp as a UTC ISO 8601 string."""
    return datetime.fromtimestamp(int(timestamp), timezone.utc).strftime(READABLE_FORMAT)


def readable_to_timestamp(value: Any) -> int:
    """
    Parse a date back into a unix timestamp.

    Accepts ISO 8601 strings (naive values are UTC), integer timestamps
    and digit strings.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid date: {value!r}")
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")

    text = value.strip()
    if text.isdigit():
        return int(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def normalize_readable(value: Any) -> Optional[str]:
    """Canonical readable form of a date edit, or None if it does not parse."""
    try:
        return timestamp_to_readable(readable_to_timestamp(value))
    except (ValueError, OverflowError, OSError):
        return None


def start_of_today_utc() -> int:
    today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(today.timestamp())
