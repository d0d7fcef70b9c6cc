"""Error message formatting utilities for CLI output."""

from typing import Dict

from logify.config import ConfigError
from logify.domain.pipelines.exceptions import (
    CsvIOError,
    EmptyAggregateError,
    MalformedRowError,
    PipelineStepError,
    RecordValidationError,
    ValidationErrorKind,
)

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_INPUT = 2

VALIDATION_KIND_LABELS: Dict[ValidationErrorKind, str] = {
    ValidationErrorKind.INVALID_TIMESTAMP: "invalid timestamp",
    ValidationErrorKind.EMPTY_USER_ID: "empty user_id",
    ValidationErrorKind.INVALID_DURATION: "invalid duration",
    ValidationErrorKind.NEGATIVE_DURATION: "negative duration",
}


def _row_suffix(row_number) -> str:
    return f" at row {row_number}" if row_number is not None else ""


def format_error(exc: Exception) -> str:
    """Return a one-line, user-facing description of ``exc``."""
    if isinstance(exc, RecordValidationError):
        label = VALIDATION_KIND_LABELS[exc.kind]
        return f"Validation error ({label}){_row_suffix(exc.row_number)}: {exc.message}"
    if isinstance(exc, MalformedRowError):
        return f"Malformed input{_row_suffix(exc.row_number)}: {exc.message}"
    if isinstance(exc, CsvIOError):
        return f"I/O error: {exc}"
    if isinstance(exc, EmptyAggregateError):
        return f"Empty aggregate: no entries left to compute {exc.operation}"
    if isinstance(exc, PipelineStepError):
        return f"Transform step failed: {exc}"
    if isinstance(exc, ConfigError):
        return f"Configuration error: {exc}"
    return f"{type(exc).__name__}: {exc}"


def exit_code_for(exc: Exception) -> int:
    """Map an exception to the process exit code."""
    if isinstance(
        exc,
        (
            CsvIOError,
            MalformedRowError,
            RecordValidationError,
            EmptyAggregateError,
            ConfigError,
            ValueError,
        ),
    ):
        return EXIT_BAD_INPUT
    return EXIT_FAILURE
