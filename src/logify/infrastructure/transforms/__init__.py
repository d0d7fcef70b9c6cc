"""
Transform stage: pure operations over LogEntry sequences and the step
classes that compose them into reusable pipelines.

Usage:
    >>> from logify.infrastructure.transforms import (
    ...     Pipeline, FilterStep, DurationConversionStep, action_is, DurationUnit
    ... )
"""

from .base import Pipeline, TransformStep
from .operations import (
    CombinedEntry,
    DurationSummary,
    DurationUnit,
    TimeStats,
    action_is,
    aggregate_metadata_values,
    attach_metadata,
    average_duration,
    calculate_time_stats,
    combine_by_metadata_key,
    combine_by_timestamp,
    convert_duration,
    count_by_action,
    derive_entries,
    duration_above,
    duration_at_least,
    filter_entries,
    flatten_metadata,
    group_by_window,
    has_metadata_key,
    merge_chronologically,
    merge_metadata,
    sort_by_timestamp,
    summarize_durations,
    total_duration,
    user_is,
    within_time_range,
)
from .standard_steps import (
    DurationConversionStep,
    FilterStep,
    MetadataStep,
    SortStep,
)

__all__ = [
    # Base classes
    "TransformStep",
    "Pipeline",
    # Standard steps
    "FilterStep",
    "DurationConversionStep",
    "MetadataStep",
    "SortStep",
    # Operations
    "filter_entries",
    "derive_entries",
    "convert_duration",
    "attach_metadata",
    "merge_metadata",
    "sort_by_timestamp",
    "merge_chronologically",
    "combine_by_timestamp",
    "combine_by_metadata_key",
    "average_duration",
    "total_duration",
    "summarize_durations",
    "count_by_action",
    "calculate_time_stats",
    "group_by_window",
    "aggregate_metadata_values",
    "flatten_metadata",
    "CombinedEntry",
    "DurationSummary",
    "TimeStats",
    "DurationUnit",
    # Predicates
    "action_is",
    "user_is",
    "duration_above",
    "duration_at_least",
    "within_time_range",
    "has_metadata_key",
]
