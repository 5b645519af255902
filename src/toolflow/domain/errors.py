"""Domain errors.

Tool failures travel as exceptions up to the execution engine, which wraps
them, walks the fallback chain and either recovers or raises
AllFallbacksExhaustedError. Pipeline failures are always fatal to the
request and surface as PipelineStageError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .domain_type import StageCategory
    from .pipeline import Pipeline


class ToolflowError(Exception):
    """Base class for every error raised by the domain layer."""


class ToolNotFoundError(ToolflowError, KeyError):
    """Raised when a tool name is not registered in the catalog."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool {tool_name} not found")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class ToolUnavailableError(ToolflowError):
    """Raised by a tool that lacks the configuration it needs (e.g. an API key)."""


class ToolInvocationError(ToolflowError):
    """Wraps the underlying failure of a single tool invocation."""

    def __init__(self, tool_name: str, cause: BaseException) -> None:
        self.tool_name = tool_name
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)


class AllFallbacksExhaustedError(ToolInvocationError):
    """The primary tool and every fallback in its chain failed.

    Carries the primary tool's original error; the message is the original
    message so callers see what actually went wrong first.
    """

    def __init__(self, tool_name: str, original: ToolInvocationError, attempted: tuple[str, ...] = ()) -> None:
        self.original = original
        self.attempted = attempted
        super().__init__(tool_name, original.cause)


class PipelineStageError(ToolflowError):
    """A content pipeline stage raised; the remaining stages were not run."""

    def __init__(self, stage: StageCategory, cause: BaseException, trace: Pipeline) -> None:
        self.stage = stage
        self.cause = cause
        self.trace = trace
        super().__init__(f"{stage.value} stage failed: {cause}")


class CompletionError(ToolflowError):
    """The completion collaborator failed to produce a chat reply."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Completion failed: {cause}")


__all__ = [
    "AllFallbacksExhaustedError",
    "CompletionError",
    "PipelineStageError",
    "ToolInvocationError",
    "ToolNotFoundError",
    "ToolUnavailableError",
    "ToolflowError",
]
