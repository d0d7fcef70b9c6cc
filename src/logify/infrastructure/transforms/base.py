"""
Base classes for composable transform steps.

Steps wrap the pure operations in ``operations`` so a sequence of
transformations can be assembled once and run over many batches:

    >>> pipeline = Pipeline([
    ...     FilterStep(action_is("login"), description="logins only"),
    ...     DurationConversionStep(DurationUnit.SECONDS, DurationUnit.MINUTES),
    ... ])
    >>> result = pipeline.execute(entries, context)

Design Principles:
- Immutability: steps return new lists, never mutate their input
- Caller-determined order: the pipeline imposes none of its own
- No ambient state: clock and telemetry come from the PipelineContext
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from logify.domain.log_entry.models import LogEntry
from logify.domain.pipelines.exceptions import PipelineError, PipelineStepError
from logify.domain.pipelines.types import PipelineContext, emit


class TransformStep(ABC):
    """
    Abstract base class for all transform steps.

    Example:
        >>> class KeepAll(TransformStep):
        ...     @property
        ...     def name(self) -> str:
        ...         return "KeepAll"
        ...
        ...     def apply(self, entries, context):
        ...         return list(entries)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return human-friendly step name used for telemetry."""
        pass

    @abstractmethod
    def apply(
        self, entries: Sequence[LogEntry], context: PipelineContext
    ) -> List[LogEntry]:
        """
        Apply the transformation.

        Args:
            entries: Input entries (must not be mutated)
            context: Pipeline execution context

        Returns:
            New list of entries
        """
        pass


class Pipeline:
    """
    Compose multiple TransformSteps into a sequential pipeline.

    The output of each step is the input of the next. Pipeline errors raised
    by a step propagate unchanged; anything else is wrapped in
    PipelineStepError naming the step.
    """

    def __init__(self, steps: List[TransformStep]) -> None:
        """
        Initialize pipeline with a list of steps.

        Args:
            steps: Ordered list of TransformStep instances to execute
        """
        for step in steps:
            if not isinstance(step, TransformStep):
                raise TypeError(
                    f"pipeline steps must be TransformStep, got {type(step).__name__}"
                )
        self.steps = list(steps)

    def add_step(self, step: TransformStep) -> "Pipeline":
        """Append a step (builder-style API)."""
        if not isinstance(step, TransformStep):
            raise TypeError(
                f"pipeline steps must be TransformStep, got {type(step).__name__}"
            )
        self.steps.append(step)
        return self

    def execute(
        self, entries: Sequence[LogEntry], context: PipelineContext
    ) -> List[LogEntry]:
        """
        Execute all steps in sequence.

        Raises:
            PipelineError: Raised by a step, propagated unchanged
            PipelineStepError: If a step fails with any other exception
        """
        result = list(entries)
        for index, step in enumerate(self.steps):
            rows_before = len(result)
            try:
                result = step.apply(result, context)
            except PipelineError:
                raise
            except Exception as exc:
                raise PipelineStepError(
                    f"{type(exc).__name__}: {exc}",
                    step_name=step.name,
                    step_index=index,
                ) from exc

            emit(
                context.sink,
                "step_completed",
                pipeline=context.pipeline_name,
                execution_id=context.execution_id,
                step=step.name,
                rows_before=rows_before,
                rows_after=len(result),
            )
        return result
