"""
Batch service: one complete read → transform → write pass over a log file.

This is the orchestration layer the CLI calls. It owns nothing the core does
not already provide; it picks the steps from its arguments, runs them through
a Pipeline and reports plain-value telemetry to the injected sink.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional, Union

from logify.config import Settings, get_settings
from logify.domain.pipelines.exceptions import EmptyAggregateError
from logify.domain.pipelines.types import (
    BatchResult,
    Clock,
    PipelineContext,
    TelemetrySink,
    emit,
)
from logify.infrastructure.transforms import (
    DurationConversionStep,
    DurationUnit,
    FilterStep,
    Pipeline,
    TransformStep,
    action_is,
    average_duration,
    duration_at_least,
)
from logify.io.csv_handler import CsvHandler
from logify.utils.date_parser import utc_now

PIPELINE_NAME = "log_batch"


def build_batch_pipeline(
    action: Optional[str] = None,
    min_duration: Optional[float] = None,
    from_unit: DurationUnit = DurationUnit.SECONDS,
    to_unit: Optional[DurationUnit] = None,
) -> Pipeline:
    """
    Assemble the standard batch pipeline.

    Filters run before the unit conversion, so ``min_duration`` is expressed in
    ``from_unit``.
    """
    steps: List[TransformStep] = []
    if action is not None:
        steps.append(FilterStep(action_is(action), description=f"action == {action!r}"))
    if min_duration is not None:
        steps.append(
            FilterStep(
                duration_at_least(min_duration),
                description=f"duration >= {min_duration}",
            )
        )
    if to_unit is not None:
        steps.append(DurationConversionStep(from_unit, to_unit))
    return Pipeline(steps)


def process_log_file(
    source: Union[str, Path],
    destination: Union[str, Path],
    *,
    action: Optional[str] = None,
    min_duration: Optional[float] = None,
    to_unit: Optional[DurationUnit] = None,
    settings: Optional[Settings] = None,
    clock: Clock = utc_now,
    sink: Optional[TelemetrySink] = None,
) -> BatchResult:
    """
    Read ``source``, filter and convert its entries, write ``destination``.

    Args:
        source: Input log file
        destination: Output log file (replaced atomically)
        action: Keep only entries with this action
        min_duration: Keep only entries with at least this duration
        to_unit: Convert durations to this unit and stamp metadata
        settings: Delimiter/header/unit configuration (defaults to env)
        clock: Time source for metadata stamping
        sink: Telemetry receiver

    Returns:
        BatchResult with row counts and the average written duration

    Raises:
        PipelineError: Any read, validation, transform or write failure
    """
    settings = settings or get_settings()
    if to_unit is not None:
        to_unit = DurationUnit(to_unit)
    started = time.perf_counter()

    handler = CsvHandler(
        delimiter=settings.csv_delimiter,
        has_headers=settings.csv_has_headers,
        sink=sink,
    )
    entries = handler.read_logs(source)

    pipeline = build_batch_pipeline(
        action=action,
        min_duration=min_duration,
        from_unit=settings.duration_unit,
        to_unit=to_unit,
    )
    context = PipelineContext(pipeline_name=PIPELINE_NAME, clock=clock, sink=sink)
    transformed = pipeline.execute(entries, context)

    filtered_out = len(entries) - len(transformed)
    try:
        average: Optional[float] = average_duration(transformed, sink=sink)
    except EmptyAggregateError:
        average = None
        emit(sink, "aggregate_skipped", name="average_duration", reason="no entries")

    rows_written = handler.write_logs(destination, transformed)

    result = BatchResult(
        source=Path(source),
        destination=Path(destination),
        rows_read=len(entries),
        rows_filtered=filtered_out,
        rows_written=rows_written,
        average_duration=average,
        duration_unit=(to_unit or settings.duration_unit).value,
        duration_ms=(time.perf_counter() - started) * 1000,
    )
    emit(sink, "batch_completed", **result.as_dict())
    return result
