"""
Canonical LogEntry record.

Raw entries come out of the CSV reader with ``metadata = None``; derived
entries are produced by the transform stage and carry processing metadata.
Instances are frozen: every transformation builds a new, re-validated entry.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    ValidationError,
    field_validator,
)

from logify.domain.pipelines.exceptions import (
    RecordValidationError,
    ValidationErrorKind,
)

from .constants import DURATION_FIELD, TIMESTAMP_FIELD, USER_ID_FIELD

_KIND_BY_FIELD = {
    TIMESTAMP_FIELD: ValidationErrorKind.INVALID_TIMESTAMP,
    USER_ID_FIELD: ValidationErrorKind.EMPTY_USER_ID,
    DURATION_FIELD: ValidationErrorKind.INVALID_DURATION,
}


class LogEntry(BaseModel):
    """One validated event record."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
    )

    timestamp: AwareDatetime = Field(..., description="Event instant with UTC offset")
    user_id: str = Field(..., min_length=1, description="Non-empty user identifier")
    action: str = Field(..., description="Free-form event kind, e.g. 'login'")
    duration: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Non-negative duration"
    )
    metadata: Optional[JsonValue] = Field(
        None, description="Structured payload, present on derived entries"
    )

    @field_validator(USER_ID_FIELD, mode="before")
    @classmethod
    def strip_user_id(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator(DURATION_FIELD, mode="after")
    @classmethod
    def normalize_negative_zero(cls, v: float) -> float:
        # -0.0 passes ge=0; store it as 0.0 so it never formats as "-0.0"
        return 0.0 if v == 0 else v

    @property
    def has_metadata(self) -> bool:
        return self.metadata is not None

    def with_metadata(self, metadata: JsonValue) -> LogEntry:
        """Return a new entry carrying ``metadata``."""
        return self.derive(metadata=metadata)

    def derive(self, **changes: Any) -> LogEntry:
        """
        Return a new, fully re-validated entry with ``changes`` applied.

        Raises:
            RecordValidationError: If a changed timestamp, user_id or duration
                breaks a LogEntry invariant
        """
        values = {
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "action": self.action,
            "duration": self.duration,
            "metadata": self.metadata,
        }
        values.update(changes)
        try:
            return LogEntry(**values)
        except ValidationError as exc:
            record_error = _as_record_error(exc)
            if record_error is None:
                raise
            raise record_error from exc

    def same_as(self, other: LogEntry, rel_tol: float = 1e-9) -> bool:
        """Field equality with durations compared within ``rel_tol``."""
        return (
            self.timestamp == other.timestamp
            and self.user_id == other.user_id
            and self.action == other.action
            and math.isclose(self.duration, other.duration, rel_tol=rel_tol, abs_tol=1e-12)
            and self.metadata == other.metadata
        )


def instant_of(entry: LogEntry) -> datetime:
    """Sort key: the entry's timestamp."""
    return entry.timestamp


def _as_record_error(exc: ValidationError) -> Optional[RecordValidationError]:
    """Classify the first invariant failure of ``exc``, in validation order."""
    for error in exc.errors():
        field = error["loc"][0] if error["loc"] else None
        kind = _KIND_BY_FIELD.get(field)
        if kind is None:
            continue
        if field == DURATION_FIELD and error["type"] == "greater_than_equal":
            kind = ValidationErrorKind.NEGATIVE_DURATION
        return RecordValidationError(
            kind,
            f"Derived {field} is invalid: {error['msg']}",
            field=field,
            value=error.get("input"),
        )
    return None
