"""Value Layer - Immutable Records Passed Between Components.

Transient values created per request or per stage and discarded after
delivery: query analyses, progress events and completion messages.

All models are frozen so they can be shared across concurrent tasks
without copying.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from .domain_type import ExecutionStrategy, MessageRole, ProgressEventType, ProgressStage, QueryIntent


class QueryAnalysis(BaseModel):
    """Analyzer verdict for a single query.

    Attributes:
        intent: Classified purpose (or MIXED when several cue families fire)
        confidence: Heuristic certainty in [0, 1]
        suggested_tools: Tool names, best first
        parallelizable: Whether the query may be fanned out
        sub_queries: Segments split on connectives, when any were found
        strategy: Execution plan derived from the fields above

    Example:
        >>> analysis = analyzer.analyze("What is the capital of France?")
        >>> analysis.intent
        <QueryIntent.KNOWLEDGE: 'knowledge'>
    """

    intent: QueryIntent
    confidence: float = Field(ge=0.0, le=1.0)
    suggested_tools: tuple[str, ...] = ()
    parallelizable: bool = False
    sub_queries: tuple[str, ...] | None = None
    strategy: ExecutionStrategy = ExecutionStrategy.SERIAL

    model_config = ConfigDict(frozen=True)


class ProgressEvent(BaseModel):
    """One stage-transition notice delivered to a live session."""

    type: ProgressEventType
    message: str
    session_id: str
    stage: ProgressStage | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class ChatMessage(BaseModel):
    """Role-tagged message for the completion collaborator."""

    role: MessageRole
    content: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def human(cls, content: str) -> ChatMessage:
        return cls(role=MessageRole.HUMAN, content=content)


__all__ = ["ChatMessage", "ProgressEvent", "QueryAnalysis"]
