"""
Pure transform operations over sequences of LogEntry.

Every function takes a sequence and returns a new list (or a scalar for the
aggregates); inputs are never mutated. Composition order is up to the caller:

    >>> logins = filter_entries(entries, action_is("login"))
    >>> minutes = convert_duration(
    ...     logins, DurationUnit.SECONDS, DurationUnit.MINUTES, clock=utc_now
    ... )
    >>> average_duration(minutes)

Durations changed by a derivation are re-validated, so a conversion can
never emit a negative or non-finite value.
"""

from __future__ import annotations

import json
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from logify.domain.log_entry.models import LogEntry, instant_of
from logify.domain.log_entry.validator import check_duration
from logify.domain.pipelines.exceptions import EmptyAggregateError
from logify.domain.pipelines.types import Clock, TelemetrySink, emit
from logify.utils.date_parser import format_timestamp

Predicate = Callable[[LogEntry], bool]
Deriver = Callable[[LogEntry], LogEntry]

PROCESSED_AT_KEY = "processed_at"
ORIGINAL_DURATION_KEY = "original_duration"
ORIGINAL_UNIT_KEY = "original_unit"
UNIT_KEY = "unit"
SOURCE_METADATA_KEY = "source_metadata"


class DurationUnit(str, Enum):
    """Time units a duration can be expressed in."""

    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"

    @property
    def seconds(self) -> float:
        return _SECONDS_PER_UNIT[self]


_SECONDS_PER_UNIT = {
    DurationUnit.MILLISECONDS: 0.001,
    DurationUnit.SECONDS: 1.0,
    DurationUnit.MINUTES: 60.0,
    DurationUnit.HOURS: 3600.0,
}


@dataclass(frozen=True)
class DurationSummary:
    """Aggregate statistics over the durations of a non-empty sequence."""

    count: int
    total: float
    mean: float
    minimum: float
    maximum: float


@dataclass(frozen=True)
class TimeStats:
    """Time span covered by a non-empty sequence and its entry rate."""

    start: datetime
    end: datetime
    span_hours: float
    entries_per_hour: float


@dataclass(frozen=True)
class CombinedEntry:
    """A primary entry paired with its matching secondary entry, if any."""

    primary: LogEntry
    secondary: Optional[LogEntry] = None


# =============================================================================
# Predicates
# =============================================================================


def action_is(action: str) -> Predicate:
    return lambda entry: entry.action == action


def user_is(user_id: str) -> Predicate:
    return lambda entry: entry.user_id == user_id


def duration_above(threshold: float) -> Predicate:
    return lambda entry: entry.duration > threshold


def duration_at_least(threshold: float) -> Predicate:
    return lambda entry: entry.duration >= threshold


def within_time_range(start: datetime, end: datetime) -> Predicate:
    """Keep entries whose timestamp lies in ``[start, end]``."""
    if start.utcoffset() is None or end.utcoffset() is None:
        raise ValueError("time range bounds must carry a UTC offset")
    if start > end:
        raise ValueError(f"time range start {start} is after end {end}")
    return lambda entry: start <= entry.timestamp <= end


def has_metadata_key(key: str) -> Predicate:
    return lambda entry: isinstance(entry.metadata, dict) and key in entry.metadata


# =============================================================================
# Filter / derive
# =============================================================================


def filter_entries(
    entries: Iterable[LogEntry],
    predicate: Predicate,
    description: str = "custom filter",
    sink: Optional[TelemetrySink] = None,
) -> List[LogEntry]:
    """Keep entries satisfying ``predicate``, preserving their order."""
    if not callable(predicate):
        raise TypeError(f"predicate must be callable, got {type(predicate).__name__}")

    source = list(entries)
    kept = [entry for entry in source if predicate(entry)]
    emit(
        sink,
        "records_filtered",
        rows_before=len(source),
        rows_after=len(kept),
        rows_filtered_out=len(source) - len(kept),
        filter_description=description,
    )
    return kept


def derive_entries(entries: Iterable[LogEntry], deriver: Deriver) -> List[LogEntry]:
    """Produce exactly one new entry per source entry, in order."""
    derived: List[LogEntry] = []
    for entry in entries:
        result = deriver(entry)
        if not isinstance(result, LogEntry):
            raise TypeError(
                f"deriver must return LogEntry, got {type(result).__name__}"
            )
        derived.append(result)
    return derived


def merge_metadata(existing: Any, additions: Mapping[str, Any]) -> Dict[str, Any]:
    """Layer ``additions`` over an entry's current metadata."""
    if existing is None:
        return dict(additions)
    if isinstance(existing, dict):
        return {**existing, **additions}
    return {SOURCE_METADATA_KEY: existing, **additions}


def convert_duration(
    entries: Iterable[LogEntry],
    from_unit: DurationUnit,
    to_unit: DurationUnit,
    clock: Clock,
    sink: Optional[TelemetrySink] = None,
) -> List[LogEntry]:
    """
    Rescale every duration from ``from_unit`` to ``to_unit``.

    Each derived entry records the processing instant and the value it was
    derived from, so the conversion can be traced and inverted.

    Raises:
        RecordValidationError: If a rescaled duration is non-finite
    """
    from_unit = DurationUnit(from_unit)
    to_unit = DurationUnit(to_unit)
    processed_at = format_timestamp(clock())

    def _convert(entry: LogEntry) -> LogEntry:
        duration = check_duration(entry.duration * from_unit.seconds / to_unit.seconds)
        metadata = merge_metadata(
            entry.metadata,
            {
                PROCESSED_AT_KEY: processed_at,
                ORIGINAL_DURATION_KEY: entry.duration,
                ORIGINAL_UNIT_KEY: from_unit.value,
                UNIT_KEY: to_unit.value,
            },
        )
        return entry.derive(duration=duration, metadata=metadata)

    derived = derive_entries(entries, _convert)
    emit(
        sink,
        "records_derived",
        count=len(derived),
        from_unit=from_unit.value,
        to_unit=to_unit.value,
    )
    return derived


def attach_metadata(
    entries: Iterable[LogEntry],
    values: Mapping[str, Any],
    clock: Clock,
) -> List[LogEntry]:
    """Stamp each entry with ``processed_at`` plus ``values``."""
    additions = {PROCESSED_AT_KEY: format_timestamp(clock()), **values}
    return derive_entries(
        entries,
        lambda entry: entry.with_metadata(merge_metadata(entry.metadata, additions)),
    )


# =============================================================================
# Ordering
# =============================================================================


def sort_by_timestamp(
    entries: Iterable[LogEntry], reverse: bool = False
) -> List[LogEntry]:
    """Stable sort by instant; entries with equal timestamps keep their order."""
    return sorted(entries, key=instant_of, reverse=reverse)


def merge_chronologically(
    primary: Iterable[LogEntry], secondary: Iterable[LogEntry]
) -> List[LogEntry]:
    """Interleave two sequences into one timeline; ties keep primary first."""
    return sort_by_timestamp([*primary, *secondary])


# =============================================================================
# Combining two sources
# =============================================================================


def combine_by_timestamp(
    primary: Iterable[LogEntry],
    secondary: Iterable[LogEntry],
    tolerance: timedelta,
) -> List[CombinedEntry]:
    """
    Pair each primary entry with the closest secondary entry in time.

    A secondary entry matches when its timestamp is at most ``tolerance``
    away; among equally close candidates the earliest in ``secondary`` wins.
    Secondary entries may be paired more than once.

    Raises:
        ValueError: If ``tolerance`` is negative
    """
    if tolerance < timedelta(0):
        raise ValueError(f"tolerance must not be negative, got {tolerance}")

    candidates = list(secondary)
    combined: List[CombinedEntry] = []
    for entry in primary:
        match: Optional[LogEntry] = None
        best: Optional[timedelta] = None
        for candidate in candidates:
            gap = abs(candidate.timestamp - entry.timestamp)
            if gap <= tolerance and (best is None or gap < best):
                match, best = candidate, gap
        combined.append(CombinedEntry(primary=entry, secondary=match))
    return combined


def combine_by_metadata_key(
    primary: Iterable[LogEntry],
    secondary: Iterable[LogEntry],
    key: str,
) -> List[CombinedEntry]:
    """
    Pair entries whose metadata hold equal values under ``key``.

    Values are compared as JSON, so ``{"a": 1, "b": 2}`` matches
    ``{"b": 2, "a": 1}`` and ``1`` does not match ``"1"``. The first
    secondary entry carrying a value wins.
    """
    lookup: Dict[str, LogEntry] = {}
    for candidate in secondary:
        value_key = _metadata_value_key(candidate, key)
        if value_key is not None:
            lookup.setdefault(value_key, candidate)

    combined: List[CombinedEntry] = []
    for entry in primary:
        value_key = _metadata_value_key(entry, key)
        match = lookup.get(value_key) if value_key is not None else None
        combined.append(CombinedEntry(primary=entry, secondary=match))
    return combined


def _metadata_value_key(entry: LogEntry, key: str) -> Optional[str]:
    if not isinstance(entry.metadata, dict) or key not in entry.metadata:
        return None
    return _canonical_json(entry.metadata[key])


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# Aggregates
# =============================================================================


def _durations(entries: Iterable[LogEntry], operation: str) -> List[float]:
    durations = [entry.duration for entry in entries]
    if not durations:
        raise EmptyAggregateError(operation)
    return durations


def _sum(durations: Sequence[float]) -> float:
    # Finite durations can still sum past the largest float
    try:
        return math.fsum(durations)
    except OverflowError:
        return math.inf


def _mean(durations: Sequence[float]) -> float:
    count = len(durations)
    return math.fsum(duration / count for duration in durations)


def total_duration(
    entries: Iterable[LogEntry], sink: Optional[TelemetrySink] = None
) -> float:
    """Sum of durations; ``math.inf`` when the sum exceeds the float range."""
    total = _sum(_durations(entries, "total duration"))
    emit(sink, "aggregate_computed", name="total_duration", value=total)
    return total


def average_duration(
    entries: Iterable[LogEntry], sink: Optional[TelemetrySink] = None
) -> float:
    """
    Mean duration of ``entries``.

    Raises:
        EmptyAggregateError: If ``entries`` is empty
    """
    durations = _durations(entries, "average duration")
    average = _mean(durations)
    emit(
        sink,
        "aggregate_computed",
        name="average_duration",
        value=average,
        count=len(durations),
    )
    return average


def summarize_durations(
    entries: Iterable[LogEntry], sink: Optional[TelemetrySink] = None
) -> DurationSummary:
    durations = _durations(entries, "duration summary")
    summary = DurationSummary(
        count=len(durations),
        total=_sum(durations),
        mean=_mean(durations),
        minimum=min(durations),
        maximum=max(durations),
    )
    emit(sink, "aggregate_computed", name="duration_summary", value=summary.mean)
    return summary


def count_by_action(entries: Iterable[LogEntry]) -> Dict[str, int]:
    """Entry count per action, in order of first appearance."""
    return dict(Counter(entry.action for entry in entries))


def calculate_time_stats(
    entries: Iterable[LogEntry], sink: Optional[TelemetrySink] = None
) -> TimeStats:
    """
    Earliest and latest timestamp, the span between them in hours and the
    number of entries per hour over that span.

    A zero span (a single entry, or all entries at one instant) reports the
    entry count as the rate.

    Raises:
        EmptyAggregateError: If ``entries`` is empty
    """
    timestamps = [entry.timestamp for entry in entries]
    if not timestamps:
        raise EmptyAggregateError("time stats")

    start, end = min(timestamps), max(timestamps)
    span_hours = (end - start).total_seconds() / 3600.0
    count = len(timestamps)
    stats = TimeStats(
        start=start,
        end=end,
        span_hours=span_hours,
        entries_per_hour=count / span_hours if span_hours > 0 else float(count),
    )
    emit(
        sink,
        "aggregate_computed",
        name="time_stats",
        value=stats.entries_per_hour,
        count=count,
    )
    return stats


def group_by_window(
    entries: Iterable[LogEntry], window: timedelta
) -> List[Tuple[datetime, List[LogEntry]]]:
    """
    Bucket entries into consecutive windows of length ``window``.

    Windows are half-open ``[start, start + window)`` and aligned on the
    earliest timestamp. Each bucket is returned with its start, in time
    order; windows without entries are omitted.

    Raises:
        ValueError: If ``window`` is not positive
    """
    if window <= timedelta(0):
        raise ValueError(f"window must be positive, got {window}")

    ordered = sort_by_timestamp(entries)
    if not ordered:
        return []

    origin = ordered[0].timestamp
    buckets: Dict[int, List[LogEntry]] = {}
    for entry in ordered:
        buckets.setdefault((entry.timestamp - origin) // window, []).append(entry)
    return [(origin + index * window, bucket) for index, bucket in buckets.items()]


def aggregate_metadata_values(entries: Iterable[LogEntry], key: str) -> Dict[str, int]:
    """
    Count the distinct values stored under ``key`` in entry metadata.

    Values are keyed by their compact JSON text (``"web"`` for a string,
    ``3`` for a number), in order of first appearance. Entries without the
    key are not counted.
    """
    counts: Counter = Counter()
    for entry in entries:
        value_key = _metadata_value_key(entry, key)
        if value_key is not None:
            counts[value_key] += 1
    return dict(counts)


# =============================================================================
# Metadata projection
# =============================================================================


def flatten_metadata(
    entries: Iterable[LogEntry], keys: Sequence[str]
) -> List[Dict[str, Any]]:
    """Pick ``keys`` out of each entry's metadata; missing keys are skipped."""
    flattened: List[Dict[str, Any]] = []
    for entry in entries:
        metadata = entry.metadata if isinstance(entry.metadata, dict) else {}
        flattened.append({key: metadata[key] for key in keys if key in metadata})
    return flattened
