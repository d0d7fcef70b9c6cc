"""
Field validation for raw log rows.

Checks run in a fixed order and the first failure wins, so the same bad row
always reports the same ValidationErrorKind:

1. timestamp parses as ISO-8601 with offset  -> INVALID_TIMESTAMP
2. user_id is non-empty after trimming       -> EMPTY_USER_ID
3. duration parses as a finite float         -> INVALID_DURATION
4. duration is >= 0                           -> NEGATIVE_DURATION

Usage:
    >>> entry = validate_fields({
    ...     "timestamp": "2024-03-15T10:00:00Z",
    ...     "user_id": "user1",
    ...     "action": "login",
    ...     "duration": "30.5",
    ... })
    >>> entry.duration
    30.5
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Mapping, Optional

from logify.domain.pipelines.exceptions import (
    RecordValidationError,
    ValidationErrorKind,
)
from logify.utils.date_parser import parse_timestamp

from .constants import ACTION_FIELD, DURATION_FIELD, TIMESTAMP_FIELD, USER_ID_FIELD
from .models import LogEntry

# Plain decimal or scientific notation; no underscores, hex or inf/nan words
_DECIMAL_PATTERN = re.compile(
    r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII
)


def check_timestamp(value: Any, row_number: Optional[int] = None) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise RecordValidationError(
            ValidationErrorKind.INVALID_TIMESTAMP,
            str(exc),
            row_number=row_number,
            field=TIMESTAMP_FIELD,
            value=value,
        ) from exc


def check_user_id(value: Any, row_number: Optional[int] = None) -> str:
    user_id = "" if value is None else str(value).strip()
    if not user_id:
        raise RecordValidationError(
            ValidationErrorKind.EMPTY_USER_ID,
            "user_id cannot be empty",
            row_number=row_number,
            field=USER_ID_FIELD,
            value=value,
        )
    return user_id


def parse_duration(value: Any, row_number: Optional[int] = None) -> float:
    """Parse a raw duration field and run the range checks on the result."""
    text = "" if value is None else str(value).strip()
    if not _DECIMAL_PATTERN.fullmatch(text):
        raise RecordValidationError(
            ValidationErrorKind.INVALID_DURATION,
            f"Cannot parse '{value}' as duration",
            row_number=row_number,
            field=DURATION_FIELD,
            value=value,
        )
    duration = float(text)
    return check_duration(duration, row_number=row_number, raw=value)


def check_duration(
    duration: float,
    row_number: Optional[int] = None,
    raw: Any = None,
) -> float:
    """
    Enforce the duration invariants on an already-numeric value.

    Used both on read and after every arithmetic derivation, so a rescaled
    duration that overflows or turns negative is rejected rather than written.
    """
    shown = duration if raw is None else raw
    if not math.isfinite(duration):
        raise RecordValidationError(
            ValidationErrorKind.INVALID_DURATION,
            f"Duration '{shown}' is not a finite number",
            row_number=row_number,
            field=DURATION_FIELD,
            value=shown,
        )
    if duration < 0:
        raise RecordValidationError(
            ValidationErrorKind.NEGATIVE_DURATION,
            f"Duration '{shown}' must be non-negative",
            row_number=row_number,
            field=DURATION_FIELD,
            value=shown,
        )
    return duration


def validate_fields(
    raw_fields: Mapping[str, Any],
    row_number: Optional[int] = None,
) -> LogEntry:
    """
    Turn the raw textual fields of one row into a LogEntry.

    Args:
        raw_fields: Column name -> raw text, as extracted from one row
        row_number: 1-based data row number used in error messages

    Returns:
        LogEntry with ``metadata = None``

    Raises:
        RecordValidationError: On the first failed check, in the order above
    """
    timestamp = check_timestamp(raw_fields.get(TIMESTAMP_FIELD), row_number)
    user_id = check_user_id(raw_fields.get(USER_ID_FIELD), row_number)
    duration = parse_duration(raw_fields.get(DURATION_FIELD), row_number)
    action = raw_fields.get(ACTION_FIELD)

    return LogEntry(
        timestamp=timestamp,
        user_id=user_id,
        action="" if action is None else str(action),
        duration=duration,
    )
