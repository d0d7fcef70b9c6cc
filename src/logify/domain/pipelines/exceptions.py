"""
Exception hierarchy for the log record pipeline.

Every failure raised by the reader, the writer or the transform stage derives
from ``PipelineError`` so the entry point can report all of them through a
single ``except`` clause while still dispatching on the concrete kind.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ValidationErrorKind(str, Enum):
    """Closed set of reasons a raw row fails to become a LogEntry."""

    INVALID_TIMESTAMP = "invalid_timestamp"
    EMPTY_USER_ID = "empty_user_id"
    INVALID_DURATION = "invalid_duration"
    NEGATIVE_DURATION = "negative_duration"


def _with_context(message: str, **context: Any) -> str:
    parts = [f"{key}={value!r}" for key, value in context.items() if value is not None]
    if parts:
        return f"{message} ({', '.join(parts)})"
    return message


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""

    pass


class CsvIOError(PipelineError):
    """
    Raised when a source or destination file cannot be opened, read or written.

    Args:
        message: Error description
        path: File that failed (optional)
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(_with_context(message, path=path))


class MalformedRowError(PipelineError):
    """
    Raised when a row does not match the expected column layout.

    Args:
        message: Error description
        row_number: 1-based data row number, header excluded (optional)
    """

    def __init__(self, message: str, row_number: Optional[int] = None):
        self.message = message
        self.row_number = row_number
        super().__init__(_with_context(message, row=row_number))


class RecordValidationError(PipelineError):
    """
    Raised when a row's fields violate a LogEntry constraint.

    Args:
        kind: Classified validation failure
        message: Error description
        row_number: 1-based data row number, header excluded (optional)
        field: Name of the offending field (optional)
        value: Offending raw value (optional)
    """

    def __init__(
        self,
        kind: ValidationErrorKind,
        message: str,
        row_number: Optional[int] = None,
        field: Optional[str] = None,
        value: Any = None,
    ):
        self.kind = kind
        self.message = message
        self.row_number = row_number
        self.field = field
        self.value = value
        super().__init__(_with_context(message, row=row_number, field=field))


class EmptyAggregateError(PipelineError):
    """Raised when an aggregation is requested over zero entries."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot compute {operation} over an empty sequence")


class PipelineStepError(PipelineError):
    """
    Raised when a composed transform step fails unexpectedly.

    Args:
        message: Error description
        step_name: Name of the step that failed
        step_index: Position of the step in the pipeline (optional)
    """

    def __init__(
        self,
        message: str,
        step_name: Optional[str] = None,
        step_index: Optional[int] = None,
    ):
        self.step_name = step_name
        self.step_index = step_index
        super().__init__(_with_context(message, step=step_name, step_index=step_index))
