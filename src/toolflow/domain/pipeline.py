"""Pipeline Trace Models - Type-Safe Stage Tracking.

Records what happened in each stage of the content pipeline so a run can be
inspected, logged and returned alongside its output.

Key Concepts:
    - Discriminated union for stage outcomes (Success/Failed)
    - Immutable accumulation: append() returns a new Pipeline
    - Semantic types via RootModel wrappers for readable log attributes

Example Usage:
    >>> trace = Pipeline()
    >>> trace = trace.append(
    ...     SuccessStage(
    ...         status=StageStatus.SUCCESS,
    ...         category=StageCategory.RESEARCH,
    ...         name=StageName("research"),
    ...         data=StageOutput(text="findings"),
    ...         start_time=start,
    ...         end_time=end,
    ...     )
    ... )
    >>> trace.total_duration_ms
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, RootModel, computed_field

from .domain_type import ErrorCategory, StageCategory, StageStatus


class StageName(RootModel[str]):
    """Stage identifier, safe for use as a log key.

    Example:
        >>> StageName("research").root
        'research'
    """

    root: str = Field(min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9_-]+$")
    model_config = ConfigDict(frozen=True)


class ErrorMessage(RootModel[str]):
    """Non-empty error text from a failed stage.

    Use from_exception() rather than str(exc): some exceptions stringify to
    an empty string and provider errors can be very long.
    """

    root: str = Field(min_length=1, max_length=1000)
    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorMessage:
        text = str(exc).strip() or type(exc).__name__
        return cls(text[:1000])


class StageOutput(BaseModel):
    """Full text produced by a stage and consumed by the next one."""

    text: str

    model_config = ConfigDict(frozen=True)


class ErrorSummary(RootModel[dict[ErrorCategory, int]]):
    """Error count distribution by category."""

    root: dict[ErrorCategory, int] = Field(default_factory=dict)
    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def total_errors(self) -> int:
        return sum(self.root.values())

    @computed_field
    @property
    def most_common(self) -> ErrorCategory | None:
        """Most frequent category; the first one seen wins a tie."""
        if not self.root:
            return None
        return max(self.root.items(), key=lambda x: x[1])[0]


class LogAttributes(RootModel[dict[str, Any]]):
    """Pipeline state flattened for structured logging.

    Keys always present:
        - pipeline.total_stages: int
        - pipeline.succeeded: bool
        - pipeline.failed: bool
        - pipeline.total_duration_ms: float
        - pipeline.stage_flow: list[str]
        - pipeline.error_summary: dict[str, int]
    """

    root: dict[str, Any]
    model_config = ConfigDict(frozen=True)


class SuccessStage(BaseModel):
    """A stage that completed and produced output.

    Attributes:
        status: Always SUCCESS (discriminator field)
        category: Which pipeline stage ran
        name: Stage identifier
        data: Output handed to the next stage
        start_time: When the stage began
        end_time: When the stage completed
    """

    status: Literal[StageStatus.SUCCESS]
    category: StageCategory
    name: StageName
    data: StageOutput
    start_time: datetime
    end_time: datetime

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def duration_ms(self) -> float:
        delta = self.end_time - self.start_time
        return delta.total_seconds() * 1000


class FailedStage(BaseModel):
    """A stage that raised; nothing after it ran.

    Two categories are tracked: category says which stage was attempted,
    error_category says why it failed. Together they answer questions like
    "how often does the write stage fail on the completion provider".
    """

    status: Literal[StageStatus.FAILED]
    category: StageCategory
    error_category: ErrorCategory
    name: StageName
    error: ErrorMessage
    start_time: datetime
    end_time: datetime

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def duration_ms(self) -> float:
        """Time from start until the failure surfaced."""
        delta = self.end_time - self.start_time
        return delta.total_seconds() * 1000


# Stage = SuccessStage | FailedStage
#
# isinstance() narrows the union: only SuccessStage has .data, only
# FailedStage has .error. There is no skipped outcome; the pipeline either
# runs a stage or stops.
Stage = SuccessStage | FailedStage


class Pipeline(BaseModel):
    """Immutable record of the stages a content pipeline run went through.

    Attributes:
        stages: Stages in execution order

    Computed Properties:
        succeeded: At least one stage and no failures
        failed: Any stage failed
        error_summary: ErrorCategory distribution
        stage_categories: Execution flow
        total_duration_ms: Sum of stage durations
    """

    stages: tuple[Stage, ...] = ()

    model_config = ConfigDict(frozen=True)

    def append(self, stage: Stage) -> Pipeline:
        """Return a new Pipeline with stage appended; self is unchanged."""
        return self.model_copy(update={"stages": (*self.stages, stage)})

    @computed_field
    @property
    def succeeded(self) -> bool:
        if not self.stages:
            return False
        return all(isinstance(stage, SuccessStage) for stage in self.stages)

    @computed_field
    @property
    def failed(self) -> bool:
        return any(isinstance(stage, FailedStage) for stage in self.stages)

    @computed_field
    @property
    def error_summary(self) -> ErrorSummary:
        errors = [stage.error_category for stage in self.stages if isinstance(stage, FailedStage)]
        return ErrorSummary(dict(Counter(errors)))

    @computed_field
    @property
    def stage_categories(self) -> tuple[StageCategory, ...]:
        return tuple(stage.category for stage in self.stages)

    @computed_field
    @property
    def total_duration_ms(self) -> float:
        return sum(stage.duration_ms for stage in self.stages)

    def to_log_attributes(self) -> LogAttributes:
        """Export pipeline state as flat, JSON-friendly log attributes."""
        return LogAttributes(
            {
                "pipeline.total_stages": len(self.stages),
                "pipeline.succeeded": self.succeeded,
                "pipeline.failed": self.failed,
                "pipeline.total_duration_ms": self.total_duration_ms,
                "pipeline.stage_flow": [cat.value for cat in self.stage_categories],
                # Enum keys to strings for JSON compatibility
                "pipeline.error_summary": {k.value: v for k, v in self.error_summary.root.items()},
            }
        )


__all__ = [
    "ErrorMessage",
    "ErrorSummary",
    "FailedStage",
    "LogAttributes",
    "Pipeline",
    "Stage",
    "StageName",
    "StageOutput",
    "SuccessStage",
]
