"""
Shared pipeline contracts: exception hierarchy, execution context and the
injectable clock / telemetry collaborators.
"""

from .exceptions import (
    CsvIOError,
    EmptyAggregateError,
    MalformedRowError,
    PipelineError,
    PipelineStepError,
    RecordValidationError,
    ValidationErrorKind,
)
from .types import (
    BatchResult,
    Clock,
    PipelineContext,
    RecordingSink,
    TelemetrySink,
    emit,
)

__all__ = [
    # Exception hierarchy
    "PipelineError",
    "CsvIOError",
    "MalformedRowError",
    "RecordValidationError",
    "ValidationErrorKind",
    "EmptyAggregateError",
    "PipelineStepError",
    # Types
    "BatchResult",
    "Clock",
    "PipelineContext",
    "RecordingSink",
    "TelemetrySink",
    "emit",
]
