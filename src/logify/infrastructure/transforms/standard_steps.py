"""
Standard transform steps.

Each step is a thin, reusable wrapper over one operation from
``operations``; the behavior (ordering, immutability, re-validation) is the
operation's.
"""

from typing import Any, Dict, List, Optional, Sequence

from logify.domain.log_entry.models import LogEntry
from logify.domain.pipelines.types import PipelineContext

from .base import TransformStep
from .operations import (
    DurationUnit,
    Predicate,
    attach_metadata,
    convert_duration,
    filter_entries,
    sort_by_timestamp,
)


class FilterStep(TransformStep):
    """
    Keep entries matching a predicate.

    Example:
        >>> step = FilterStep(duration_above(0.0), description="non-zero")
    """

    def __init__(self, predicate: Predicate, description: str = "custom filter") -> None:
        if not callable(predicate):
            raise TypeError(
                f"predicate must be callable, got {type(predicate).__name__}"
            )
        self._predicate = predicate
        self._description = description

    @property
    def name(self) -> str:
        return "FilterStep"

    def apply(
        self, entries: Sequence[LogEntry], context: PipelineContext
    ) -> List[LogEntry]:
        return filter_entries(
            entries,
            self._predicate,
            description=self._description,
            sink=context.sink,
        )


class DurationConversionStep(TransformStep):
    """Rescale durations between units and stamp conversion metadata."""

    def __init__(self, from_unit: DurationUnit, to_unit: DurationUnit) -> None:
        self.from_unit = DurationUnit(from_unit)
        self.to_unit = DurationUnit(to_unit)

    @property
    def name(self) -> str:
        return "DurationConversionStep"

    def apply(
        self, entries: Sequence[LogEntry], context: PipelineContext
    ) -> List[LogEntry]:
        return convert_duration(
            entries,
            self.from_unit,
            self.to_unit,
            clock=context.clock,
            sink=context.sink,
        )


class MetadataStep(TransformStep):
    """Attach a processing timestamp and fixed values to every entry."""

    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        self._values = dict(values or {})

    @property
    def name(self) -> str:
        return "MetadataStep"

    def apply(
        self, entries: Sequence[LogEntry], context: PipelineContext
    ) -> List[LogEntry]:
        values = {"pipeline": context.pipeline_name, **self._values}
        return attach_metadata(entries, values, clock=context.clock)


class SortStep(TransformStep):
    """Order entries by timestamp."""

    def __init__(self, reverse: bool = False) -> None:
        self.reverse = reverse

    @property
    def name(self) -> str:
        return "SortStep"

    def apply(
        self, entries: Sequence[LogEntry], context: PipelineContext
    ) -> List[LogEntry]:
        return sort_by_timestamp(entries, reverse=self.reverse)
