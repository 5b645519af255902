"""Research API Router - thin HTTP and WebSocket layer over ResearchService."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from ...domain.domain_value import QueryAnalysis
from ...domain.errors import CompletionError, PipelineStageError, ToolNotFoundError
from ...domain.progress import ProgressChannel
from ...domain.tool_catalog import ToolDescriptor
from ...service import ResearchService
from ..contracts import (
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
from ..deps import get_research_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/research", tags=["research"])

Service = Annotated[ResearchService, Depends(get_research_service)]


def _tool_response(descriptor: ToolDescriptor) -> ToolResponse:
    return ToolResponse(
        name=descriptor.name,
        description=descriptor.description,
        category=descriptor.category,
        priority=descriptor.priority,
        keywords=sorted(descriptor.keywords),
        fallback_chain=list(descriptor.fallback_chain),
    )


@router.get("/tools", response_model=list[ToolResponse])
async def list_tools(service: Service) -> list[ToolResponse]:
    """List registered tools in registration order."""
    return [_tool_response(descriptor) for descriptor in service.list_tools()]


@router.get("/tools/{tool_name}", response_model=ToolResponse)
async def get_tool(tool_name: str, service: Service) -> ToolResponse:
    try:
        registered = service.catalog.get(tool_name)
    except ToolNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _tool_response(registered.descriptor)


@router.post("/tools/clear-cache", response_model=ClearCacheResponse)
async def clear_cache(service: Service) -> ClearCacheResponse:
    """Drop every cached tool result."""
    service.clear_cache()
    return ClearCacheResponse()


@router.post("/tools/purge-expired", response_model=PurgeExpiredResponse)
async def purge_expired(service: Service) -> PurgeExpiredResponse:
    """Drop only cached results older than the TTL."""
    return PurgeExpiredResponse(purged=service.purge_expired())


@router.post("/analyze", response_model=QueryAnalysis)
async def analyze(request: QueryRequest, service: Service) -> QueryAnalysis:
    """Classify a query without running any tool."""
    return service.analyze(request.query)


@router.post("/execute", response_model=ExecuteResponse)
async def execute(request: QueryRequest, service: Service) -> ExecuteResponse:
    """
    Analyze a query and run the tools its strategy calls for.

    Tool failures are part of the response (status "failed"), not HTTP errors.
    """
    report = await service.execute_optimal_strategy(request.query)
    return ExecuteResponse(
        analysis=report.analysis,
        results=report.results.root,
        execution_time_ms=report.execution_time_ms,
    )


@router.post("/pipeline", response_model=PipelineResponse)
async def run_pipeline(request: PipelineRequest, service: Service) -> PipelineResponse:
    """
    Run Research → Write → Review.

    Thin orchestration layer:
    1. Delegate the run to the service (domain owns the stages)
    2. Map a failed stage to 502 (an upstream provider failed)
    3. Map the result to the API contract
    """
    try:
        result = await service.run_pipeline(
            request.query,
            session_id=request.session_id,
            personalization=request.personalization,
        )
    except PipelineStageError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return PipelineResponse(
        research=result.research,
        draft=result.draft,
        final=result.final,
        stages=[StageResponse(category=stage.category, duration_ms=stage.duration_ms) for stage in result.trace.stages],
        total_duration_ms=result.trace.total_duration_ms,
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, service: Service) -> ChatResponse:
    """Answer the last human message; no tools, no pipeline."""
    try:
        reply = await service.chat(request.messages)
    except CompletionError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ChatResponse(reply=reply)


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest, service: Service) -> StreamingResponse:
    """
    Stream the reply as plain text chunks.

    One task consumes the model stream into a queue, so the model call lives
    in a single task. The response starts once the first chunk arrives: a
    model that fails up front still gets a 502, a failure after that ends
    the body early.
    """
    queue: asyncio.Queue[str | CompletionError | None] = asyncio.Queue()
    pump = asyncio.create_task(_pump(service.chat_stream(request.messages), queue))

    first = await queue.get()
    if isinstance(first, CompletionError):
        raise HTTPException(status_code=502, detail=str(first)) from first
    return StreamingResponse(_drain(first, queue, pump), media_type="text/plain; charset=utf-8")


async def _pump(chunks: AsyncIterator[str], queue: asyncio.Queue[str | CompletionError | None]) -> None:
    try:
        async for chunk in chunks:
            await queue.put(chunk)
    except CompletionError as exc:
        await queue.put(exc)
    finally:
        # end of stream
        queue.put_nowait(None)


async def _drain(
    item: str | CompletionError | None,
    queue: asyncio.Queue[str | CompletionError | None],
    pump: asyncio.Task[None],
) -> AsyncIterator[str]:
    try:
        while item is not None:
            if isinstance(item, CompletionError):
                logger.error("Chat stream failed after the response started: %s", item)
                return
            yield item
            item = await queue.get()
    finally:
        # client went away mid-stream
        pump.cancel()


@router.websocket("/ws/{session_id}")
async def progress_stream(websocket: WebSocket, session_id: str, service: Service) -> None:
    """
    Stream progress events for session_id as JSON until the client disconnects.

    Messages sent by the client are ignored. Connecting again with the same
    session id takes the session over from the earlier connection.
    """
    channel = service.bus.join(session_id)
    await websocket.accept()
    sender = asyncio.create_task(_forward_events(websocket, channel))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Progress client for session %s disconnected", session_id)
    finally:
        sender.cancel()
        service.bus.leave(session_id, channel)
        # collect the sender outcome (cancelled, or a send on a closed socket)
        await asyncio.gather(sender, return_exceptions=True)


async def _forward_events(websocket: WebSocket, channel: ProgressChannel) -> None:
    async for event in channel:
        await websocket.send_text(event.model_dump_json())
