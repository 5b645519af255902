"""Thin orchestration service - owns the domain components, adds no logic."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence

from ..config import Settings
from ..domain.completion import (
    AgentCompletion,
    CompletionModel,
    Researcher,
    ToolLoopResearcher,
    with_default_system,
)
from ..domain.content_pipeline import ContentPipelineResult, PipelineOrchestrator
from ..domain.domain_type import BuiltinTool
from ..domain.domain_value import ChatMessage, QueryAnalysis
from ..domain.errors import CompletionError
from ..domain.execution import ExecutionEngine, ResultCache
from ..domain.progress import ProgressBus
from ..domain.query_analyzer import QueryAnalyzer, StrategyReport
from ..domain.tool_catalog import ToolCatalog, ToolDescriptor
from ..domain.tools import build_default_catalog

logger = logging.getLogger(__name__)


class ResearchService:
    """
    Context object for one process - zero business logic.

    Service responsibilities:
    1. Own catalog, completion model, cache, engine, analyzer, bus and orchestrator
    2. Expose the core operations to the API layer
    3. Delegate every decision to the domain components

    Built once at start-up and shared by all requests.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        completion: CompletionModel,
        researcher: Researcher | None = None,
        cache: ResultCache | None = None,
        bus: ProgressBus | None = None,
    ):
        self.catalog = catalog
        self.completion = completion
        self.engine = ExecutionEngine(catalog=catalog, cache=cache if cache is not None else ResultCache())
        self.analyzer = QueryAnalyzer(catalog=catalog, engine=self.engine)
        self.bus = bus if bus is not None else ProgressBus()
        self.orchestrator = PipelineOrchestrator(
            catalog=catalog,
            completion=completion,
            bus=self.bus,
            researcher=researcher,
        )

    def analyze(self, query: str) -> QueryAnalysis:
        return self.analyzer.analyze(query)

    async def execute_optimal_strategy(self, query: str) -> StrategyReport:
        return await self.analyzer.execute_optimal_strategy(query)

    async def run_pipeline(
        self,
        query: str,
        session_id: str | None = None,
        personalization: str | None = None,
    ) -> ContentPipelineResult:
        """
        Run Research → Write → Review for query.

        Args:
            query: Topic to research
            session_id: Live session to stream progress events to, if any
            personalization: Reader profile for the write stage

        Raises:
            PipelineStageError: A stage failed
        """
        return await self.orchestrator.run(query, session_id=session_id, personalization=personalization)

    async def chat(self, messages: Sequence[ChatMessage]) -> str:
        """
        Plain completion: messages in, reply out.

        A default assistant instruction is added when messages carry no
        system message.

        Raises:
            CompletionError: The model call failed
        """
        try:
            return await self.completion.complete(with_default_system(messages))
        except Exception as exc:
            raise CompletionError(exc) from exc

    async def chat_stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Like chat(), yielding the reply in chunks. Failures raise CompletionError."""
        try:
            async for chunk in self.completion.stream(with_default_system(messages)):
                yield chunk
        except Exception as exc:
            raise CompletionError(exc) from exc

    def clear_cache(self) -> None:
        self.engine.clear_cache()

    def purge_expired(self) -> int:
        return self.engine.purge_expired()

    def list_tools(self) -> tuple[ToolDescriptor, ...]:
        return self.catalog.all()


def create_research_service(settings: Settings) -> ResearchService:
    """
    Factory function for creating ResearchService.

    Service owns its own construction logic - the app lifespan just calls this.
    No provider is contacted here; agents are built on first use.

    Args:
        settings: Application settings

    Returns:
        Configured ResearchService ready for use
    """
    catalog = build_default_catalog(
        tavily_api_key=settings.tavily_api_key,
        http_timeout=settings.http_timeout_seconds,
        user_agent=settings.wikipedia_user_agent,
    )
    if not settings.tavily_api_key:
        logger.warning("TAVILY_API_KEY not set; web-search will fall back to encyclopedia")
    if settings.completion_model.startswith("openai:") and not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; pipeline write and review stages will fail")

    researcher = ToolLoopResearcher(
        model=settings.completion_model,
        catalog=catalog,
        tool_name=BuiltinTool.WEB_SEARCH,
        max_iterations=settings.research_max_iterations,
    )
    return ResearchService(
        catalog=catalog,
        completion=AgentCompletion(settings.completion_model),
        researcher=researcher,
        cache=ResultCache(ttl_seconds=settings.tool_cache_ttl_seconds),
        bus=ProgressBus(queue_size=settings.progress_queue_size),
    )


__all__ = ["ResearchService", "create_research_service"]
