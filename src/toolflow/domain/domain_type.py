"""Domain Type System - Core Enumerations.

Defines type-safe constants using Python's StrEnum for domain concepts.
Using StrEnum instead of plain Enum provides automatic string coercion
and better JSON serialization without custom encoders.

Several enums here double as declared priority orders: iteration order of
QueryIntent drives tie-breaks in intent classification, so member order is
part of the contract, not an accident of definition.
"""

from enum import StrEnum


class ToolCategory(StrEnum):
    """Functional family a tool belongs to.

    Used by the catalog for category cue scoring and by callers that want
    a snapshot of tools of one kind.
    """

    SEARCH = "search"
    KNOWLEDGE = "knowledge"
    COMPUTATION = "computation"
    ANALYSIS = "analysis"


class BuiltinTool(StrEnum):
    """Names of the tools registered at process start.

    Values are the catalog keys. StrEnum members compare equal to plain
    strings, so they can be used wherever a tool name is expected.
    """

    WEB_SEARCH = "web-search"
    ENCYCLOPEDIA = "encyclopedia"
    CALCULATOR = "calculator"
    STATISTICS = "statistics"


class QueryIntent(StrEnum):
    """Classified purpose of a query.

    Order Matters:
        The first four members are the regex cue families, in the order used
        to break ties when two families score the same count. MIXED is never
        a cue family; it is the verdict when more than one family is active.
    """

    SEARCH = "search"
    KNOWLEDGE = "knowledge"
    COMPUTATION = "computation"
    ANALYSIS = "analysis"
    MIXED = "mixed"


class ExecutionStrategy(StrEnum):
    """How the analyzer wants a query executed.

    States:
        PARALLEL: One tool per sub-query, fanned out concurrently
        SERIAL_WITH_SECONDARY: Top tool, then the runner-up (low confidence)
        SERIAL: Top tool only
        NO_TOOLS: Nothing suggested, nothing to run
    """

    PARALLEL = "parallel"
    SERIAL_WITH_SECONDARY = "serial_with_secondary"
    SERIAL = "serial"
    NO_TOOLS = "no_tools"


class OutcomeStatus(StrEnum):
    """Discriminator for per-tool execution outcomes."""

    SUCCESS = "success"
    FAILED = "failed"


class MessageRole(StrEnum):
    """Roles accepted by the completion collaborator."""

    SYSTEM = "system"
    HUMAN = "human"


class ProgressEventType(StrEnum):
    """Kind of progress event pushed to a live client."""

    STATUS = "status"
    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"


class ProgressStage(StrEnum):
    """Stage labels carried by progress events."""

    THINKING = "thinking"
    RESEARCHING = "researching"
    WRITING = "writing"
    REVIEWING = "reviewing"
    COMPLETE = "complete"
    ERROR = "error"


class StageStatus(StrEnum):
    """Outcome of any pipeline stage."""

    SUCCESS = "success"
    FAILED = "failed"


class StageCategory(StrEnum):
    """The three content pipeline stages, in execution order."""

    RESEARCH = "research"
    WRITING = "writing"
    REVIEW = "review"


class ErrorCategory(StrEnum):
    """Classification of pipeline errors for tracking and alerting.

    Enables log queries to group errors by type for pattern detection.
    """

    DEPENDENCY = "dependency"
    EXTERNAL_SERVICE = "external"
    RESOURCE = "resource"
    UNKNOWN = "unknown"


__all__ = [
    "BuiltinTool",
    "ErrorCategory",
    "ExecutionStrategy",
    "MessageRole",
    "OutcomeStatus",
    "ProgressEventType",
    "ProgressStage",
    "QueryIntent",
    "StageCategory",
    "StageStatus",
    "ToolCategory",
]
