"""
Core data types and protocols shared by the reader, writer and transform steps.

The pipeline never reads the system clock and never logs on its own: callers
inject a ``Clock`` for metadata stamping and an optional ``TelemetrySink`` that
receives plain-value events (counts loaded, counts filtered, aggregates).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from typing_extensions import Protocol, runtime_checkable

# Supplies the "current instant" used when stamping derived entries
Clock = Callable[[], datetime]


@runtime_checkable
class TelemetrySink(Protocol):
    """Receiver for informational pipeline events."""

    def record(self, event: str, **values: Any) -> None:
        """Accept one event with plain-value payload."""


class RecordingSink:
    """
    In-memory TelemetrySink that keeps every event it receives.

    Useful for tests and for callers that want to inspect pipeline counters
    after a run without configuring logging.
    """

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def record(self, event: str, **values: Any) -> None:
        self.events.append({"event": event, **values})

    def named(self, event: str) -> List[Dict[str, Any]]:
        """Return every recorded event called ``event``, in arrival order."""
        return [item for item in self.events if item["event"] == event]


def emit(sink: Optional[TelemetrySink], event: str, **values: Any) -> None:
    """Forward an event to ``sink`` when one was supplied."""
    if sink is not None:
        sink.record(event, **values)


@dataclass
class PipelineContext:
    """
    Context shared with every transform step invocation.

    Attributes:
        pipeline_name: Logical name of the pipeline being executed
        clock: Time source used for metadata stamping
        execution_id: Unique identifier for this execution
        sink: Optional telemetry receiver
    """

    pipeline_name: str
    clock: Clock
    execution_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    sink: Optional[TelemetrySink] = None


@dataclass
class BatchResult:
    """
    Structured return value of a complete read → transform → write run.

    Attributes:
        source: Input file
        destination: Output file
        rows_read: Entries loaded from the source
        rows_filtered: Entries removed by filters
        rows_written: Entries written to the destination
        average_duration: Mean duration of the written entries, ``None`` if empty
        duration_unit: Unit of the written durations
        duration_ms: End-to-end wall time in milliseconds
    """

    source: Path
    destination: Path
    rows_read: int
    rows_filtered: int
    rows_written: int
    average_duration: Optional[float]
    duration_unit: str
    duration_ms: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        """Return JSON-serialisable representation (useful for logging/tests)."""
        return {
            "source": str(self.source),
            "destination": str(self.destination),
            "rows_read": self.rows_read,
            "rows_filtered": self.rows_filtered,
            "rows_written": self.rows_written,
            "average_duration": self.average_duration,
            "duration_unit": self.duration_unit,
            "duration_ms": self.duration_ms,
        }

    def summary(self) -> str:
        """Concise human-readable summary."""
        average = (
            "n/a" if self.average_duration is None else f"{self.average_duration:.4f}"
        )
        return (
            f"rows_read={self.rows_read} rows_filtered={self.rows_filtered} "
            f"rows_written={self.rows_written} average_duration={average} "
            f"unit={self.duration_unit} duration_ms={self.duration_ms:.2f}"
        )
