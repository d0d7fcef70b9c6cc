"""
Logify: validate, transform and re-emit delimited log files.

The public surface is the reader/writer pair and the transform operations:

    >>> from logify import read_logs, write_logs, filter_entries, action_is
    >>> entries = read_logs("data/log.csv")
    >>> logins = filter_entries(entries, action_is("login"))
    >>> write_logs("out/logins.csv", logins)
"""

from logify.domain.log_entry.models import LogEntry
from logify.domain.pipelines.exceptions import (
    CsvIOError,
    EmptyAggregateError,
    MalformedRowError,
    PipelineError,
    PipelineStepError,
    RecordValidationError,
    ValidationErrorKind,
)
from logify.domain.pipelines.types import PipelineContext, RecordingSink, TelemetrySink
from logify.infrastructure.transforms import (
    DurationUnit,
    action_is,
    average_duration,
    convert_duration,
    filter_entries,
    summarize_durations,
)
from logify.io.csv_handler import CsvHandler, read_logs, write_logs

__all__ = [
    "LogEntry",
    "CsvHandler",
    "read_logs",
    "write_logs",
    "filter_entries",
    "convert_duration",
    "average_duration",
    "summarize_durations",
    "action_is",
    "DurationUnit",
    "PipelineContext",
    "TelemetrySink",
    "RecordingSink",
    "PipelineError",
    "CsvIOError",
    "MalformedRowError",
    "RecordValidationError",
    "ValidationErrorKind",
    "EmptyAggregateError",
    "PipelineStepError",
]

__version__ = "1.0.0"
