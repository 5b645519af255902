"""Domain Layer - Tool Routing, Execution and the Content Pipeline.

This module provides the core domain layer: which tool answers a query, how
it is invoked, and how research turns into reviewed content.

Key Components:
    - ToolCatalog: Registered tools with metadata and query scoring
    - ExecutionEngine: TTL cache, fallback chains and concurrent fan-out
    - QueryAnalyzer: Intent classification and explicit execution strategy
    - PipelineOrchestrator: Research → Write → Review with a stage trace
    - ProgressBus: Session-scoped live progress events

Design Principles:
    - Immutable by Default: Values and metadata use frozen=True
    - Explicit Dependencies: Collaborators are passed in, never global
    - Tagged Outcomes: ToolSuccess | ToolFailure instead of string prefixes
    - Type-Safe Throughout: Leverage Pydantic's validation at every boundary
"""

from .completion import AgentCompletion, CompletionModel, Researcher, ToolLoopResearcher
from .content_pipeline import ContentPipelineResult, PipelineOrchestrator
from .domain_type import (
    BuiltinTool,
    ErrorCategory,
    ExecutionStrategy,
    MessageRole,
    OutcomeStatus,
    ProgressEventType,
    ProgressStage,
    QueryIntent,
    StageCategory,
    StageStatus,
    ToolCategory,
)
from .domain_value import ChatMessage, ProgressEvent, QueryAnalysis
from .errors import (
    AllFallbacksExhaustedError,
    CompletionError,
    PipelineStageError,
    ToolflowError,
    ToolInvocationError,
    ToolNotFoundError,
    ToolUnavailableError,
)
from .execution import ExecutionEngine, ResultCache, ToolCall, ToolFailure, ToolResults, ToolSuccess
from .pipeline import FailedStage, Pipeline, SuccessStage
from .progress import ProgressBus, ProgressChannel
from .query_analyzer import QueryAnalyzer, StrategyReport
from .tool_catalog import RegisteredTool, ToolCatalog, ToolDescriptor
from .tools import build_default_catalog, calculator, statistics

__all__ = [
    "AgentCompletion",
    "AllFallbacksExhaustedError",
    "BuiltinTool",
    "ChatMessage",
    "CompletionError",
    "CompletionModel",
    "ContentPipelineResult",
    "ErrorCategory",
    "ExecutionEngine",
    "ExecutionStrategy",
    "FailedStage",
    "MessageRole",
    "OutcomeStatus",
    "Pipeline",
    "PipelineOrchestrator",
    "PipelineStageError",
    "ProgressBus",
    "ProgressChannel",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressStage",
    "QueryAnalysis",
    "QueryAnalyzer",
    "QueryIntent",
    "RegisteredTool",
    "Researcher",
    "ResultCache",
    "StageCategory",
    "StageStatus",
    "StrategyReport",
    "SuccessStage",
    "ToolCall",
    "ToolCatalog",
    "ToolCategory",
    "ToolDescriptor",
    "ToolFailure",
    "ToolInvocationError",
    "ToolLoopResearcher",
    "ToolNotFoundError",
    "ToolResults",
    "ToolSuccess",
    "ToolUnavailableError",
    "ToolflowError",
    "build_default_catalog",
    "calculator",
    "statistics",
]
