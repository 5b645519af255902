"""Research API contracts - reuse domain types where they already fit."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from ...domain.domain_type import MessageRole, StageCategory, ToolCategory
from ...domain.domain_value import ChatMessage, QueryAnalysis
from ...domain.execution import ToolOutcome


class QueryRequest(BaseModel):
    """A free-text query to analyze or execute."""

    query: str = Field(
        min_length=1,
        max_length=10_000,
        description="Free-text query",
        examples=["Calculate 5 + 3 and tell me about gravity"],
    )


class PipelineRequest(BaseModel):
    """Request to run the Research → Write → Review pipeline."""

    query: str = Field(
        min_length=1,
        max_length=10_000,
        description="Topic to research and write about",
        examples=["What is happening with fusion energy research?"],
    )
    session_id: str | None = Field(
        default=None,
        description="Session to stream progress events to (open WS /research/ws/{session_id} first)",
        examples=["3fa85f64-5717-4562-b3fc-2c963f66afa6"],
    )
    personalization: str | None = Field(
        default=None,
        max_length=2_000,
        description="Reader profile used to tailor the written draft",
        examples=["A high-school student interested in physics"],
    )


class ToolResponse(BaseModel):
    """One registered tool."""

    name: str
    description: str
    category: ToolCategory
    priority: int
    keywords: list[str]
    fallback_chain: list[str]


class ExecuteResponse(BaseModel):
    """Tool outcomes for a query, with the analysis that produced them."""

    analysis: QueryAnalysis
    results: dict[str, ToolOutcome]
    execution_time_ms: float = Field(ge=0)


class StageResponse(BaseModel):
    """Summary of one pipeline stage."""

    category: StageCategory
    duration_ms: float = Field(ge=0)


class PipelineResponse(BaseModel):
    """Outputs of every pipeline stage."""

    research: str
    draft: str
    final: str
    stages: list[StageResponse]
    total_duration_ms: float = Field(ge=0)


class ClearCacheResponse(BaseModel):
    """Acknowledgement of a cache clear."""

    cleared: bool = True


class PurgeExpiredResponse(BaseModel):
    """How many stale cache entries were dropped."""

    purged: int = Field(ge=0)


class ChatRequest(BaseModel):
    """Plain chat: role-tagged messages, the last human one is answered."""

    messages: list[ChatMessage] = Field(
        min_length=1,
        max_length=100,
        description="Conversation so far; a system message replaces the default assistant instruction",
        examples=[[{"role": "human", "content": "Explain nuclear fusion in one sentence."}]],
    )

    @model_validator(mode="after")
    def require_human_message(self) -> ChatRequest:
        if not any(msg.role == MessageRole.HUMAN for msg in self.messages):
            raise ValueError("messages must include at least one human message")
        return self


class ChatResponse(BaseModel):
    """Model reply to a chat request."""

    reply: str
