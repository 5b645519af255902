from .health import HealthResponse
from .research import (
    ChatRequest,
    ChatResponse,
    ClearCacheResponse,
    ExecuteResponse,
    PipelineRequest,
    PipelineResponse,
    PurgeExpiredResponse,
    QueryRequest,
    StageResponse,
    ToolResponse,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ClearCacheResponse",
    "ExecuteResponse",
    "HealthResponse",
    "PipelineRequest",
    "PipelineResponse",
    "PurgeExpiredResponse",
    "QueryRequest",
    "StageResponse",
    "ToolResponse",
]
