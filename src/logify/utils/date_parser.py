"""
Timestamp parsing and formatting for the delimited log format.

Timestamps are ISO-8601 date-times with an explicit UTC offset, e.g.
``2024-03-15T10:00:00Z`` or ``2024-03-15T12:00:00+02:00``. The same
formatter is used by the writer so read → write → read keeps the instant.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any

SUPPORTED_FORMATS = "YYYY-MM-DDTHH:MM:SS[.ffffff](Z|+HH:MM|-HH:MM)"

_UTC_SUFFIX = "+00:00"

# Seconds fraction in the time part; datetime holds at most microseconds
_FRACTION_PATTERN = re.compile(r":\d{2}[.,](\d+)")


def _format_supported_error(value: Any) -> str:
    return f"Cannot parse '{value}' as timestamp. Supported format: {SUPPORTED_FORMATS}"


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 date-time with offset into an aware ``datetime``.

    Raises:
        ValueError: If the value is empty, not ISO-8601, or carries no offset
    """
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError(_format_supported_error(value))
        return value

    raw = str(value).strip() if value is not None else ""
    if not raw:
        raise ValueError(_format_supported_error(value))

    fraction = _FRACTION_PATTERN.search(raw)
    if fraction and len(fraction.group(1)) > 6:
        raise ValueError(
            f"Timestamp '{value}' is more precise than microseconds. "
            f"Supported format: {SUPPORTED_FORMATS}"
        )

    # Older interpreters reject the 'Z' designator
    if raw[-1] in ("Z", "z"):
        raw = raw[:-1] + _UTC_SUFFIX

    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError(_format_supported_error(value)) from exc

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValueError(
            f"Timestamp '{value}' has no UTC offset. Supported format: {SUPPORTED_FORMATS}"
        )
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format an aware ``datetime`` as ISO-8601, using ``Z`` for a zero offset."""
    offset = value.utcoffset()
    if offset is None:
        raise ValueError(f"Cannot format naive timestamp {value!r}")

    text = value.isoformat()
    if offset == timedelta(0) and text.endswith(_UTC_SUFFIX):
        text = text[: -len(_UTC_SUFFIX)] + "Z"
    return text


def utc_now() -> datetime:
    """Default clock: the current instant in UTC."""
    return datetime.now(timezone.utc)
