"""Content Pipeline - Research → Write → Review.

A strict three-stage sequential pipeline per request:

    Research ──▶ Write ──▶ Review ──▶ Done
        │          │          │
        └──────────┴──────────┴──▶ Error

Stage Contracts:
    Research: One direct call to the web-search tool. If it raises, a
              bounded tool-using research loop takes over. Output carrying
              the no-results marker is a soft failure: the stage returns an
              explanatory string instead of raising.
    Write:    Completion call that synthesizes the research into structured
              markdown, with optional per-caller personalization.
    Review:   Completion call that returns only the improved draft.

Each stage consumes the previous stage's full output. The first raised
error stops the run: remaining stages are not called, the session (if any)
gets an error event, and the caller gets PipelineStageError. No retries.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict

from .completion import CompletionModel, Researcher
from .domain_type import BuiltinTool, ErrorCategory, StageCategory, StageStatus
from .domain_value import ChatMessage
from .errors import PipelineStageError, ToolflowError
from .pipeline import ErrorMessage, FailedStage, Pipeline, StageName, StageOutput, SuccessStage
from .progress import ProgressBus
from .tool_catalog import ToolCatalog
from .tools import NO_WEB_RESULTS

logger = logging.getLogger(__name__)

WRITER_SYSTEM_PROMPT = """
You are a technical writer. Turn the research notes you are given into a
clear, well-organized explanation in Markdown:
- start with a short summary paragraph
- use headings for the main themes and bullet points for key facts
- keep concrete figures, dates and names from the research
- end with a brief conclusion
Do not invent facts that are not in the research.
""".strip()

PERSONALIZATION_TEMPLATE = "\n\nTailor the writing to this reader:\n{personalization}"

REVIEWER_SYSTEM_PROMPT = """
You are a senior reviewer. Improve the clarity, correctness and flow of the
draft you are given. Return ONLY the improved draft, keeping its Markdown
structure. Do not add notes, explanations or any commentary about your
changes.
""".strip()

SOFT_RESEARCH_FAILURE_TEMPLATE = (
    "I couldn't find any current web content about \"{query}\". "
    "Try rephrasing the question, adding more specific terms, or asking about a related topic."
)


def writer_instruction(personalization: str | None) -> str:
    if personalization and personalization.strip():
        return WRITER_SYSTEM_PROMPT + PERSONALIZATION_TEMPLATE.format(personalization=personalization.strip())
    return WRITER_SYSTEM_PROMPT


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Map a stage exception onto an ErrorCategory for the trace."""
    from pydantic_ai.exceptions import UsageLimitExceeded

    if isinstance(exc, UsageLimitExceeded):
        return ErrorCategory.RESOURCE
    if isinstance(exc, ToolflowError):
        return ErrorCategory.DEPENDENCY
    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return ErrorCategory.EXTERNAL_SERVICE
    return ErrorCategory.UNKNOWN


class ContentPipelineResult(BaseModel):
    """Outputs of all three stages plus the stage trace."""

    research: str
    draft: str
    final: str
    trace: Pipeline

    model_config = ConfigDict(frozen=True)


class PipelineOrchestrator:
    """Runs the Research → Write → Review pipeline.

    Args:
        catalog: Source of the web-search tool for the research stage
        completion: Model used by the write and review stages
        bus: Progress events for a bound session
        researcher: Fallback research loop when the direct search raises
        research_tool: Catalog name of the search tool
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        completion: CompletionModel,
        bus: ProgressBus,
        researcher: Researcher | None = None,
        research_tool: str = BuiltinTool.WEB_SEARCH,
    ) -> None:
        self.catalog = catalog
        self.completion = completion
        self.bus = bus
        self.researcher = researcher
        self.research_tool = research_tool

    async def run(
        self,
        query: str,
        session_id: str | None = None,
        personalization: str | None = None,
    ) -> ContentPipelineResult:
        """Run all three stages in order.

        Raises:
            PipelineStageError: A stage raised; later stages were skipped
        """
        trace = Pipeline()

        self._announce(session_id, self.bus.emit_researching)
        research, trace = await self._run_stage(trace, StageCategory.RESEARCH, session_id, self.research(query))

        self._announce(session_id, self.bus.emit_writing)
        draft, trace = await self._run_stage(trace, StageCategory.WRITING, session_id, self.write(research, personalization))

        self._announce(session_id, self.bus.emit_reviewing)
        final, trace = await self._run_stage(trace, StageCategory.REVIEW, session_id, self.review(draft))

        self._announce(session_id, self.bus.emit_complete)
        logger.info("Content pipeline finished", extra=trace.to_log_attributes().root)
        return ContentPipelineResult(research=research, draft=draft, final=final, trace=trace)

    async def research(self, query: str) -> str:
        try:
            text = await self.catalog.get(self.research_tool).invoke(query)
        except Exception as exc:
            if self.researcher is None:
                raise
            logger.warning("Direct %s call failed (%s); using research loop", self.research_tool, exc)
            text = await self.researcher.research(query)

        if NO_WEB_RESULTS in text:
            logger.info("Research found no web content for query")
            return SOFT_RESEARCH_FAILURE_TEMPLATE.format(query=query)
        return text

    async def write(self, research: str, personalization: str | None = None) -> str:
        return await self.completion.complete(
            [
                ChatMessage.system(writer_instruction(personalization)),
                ChatMessage.human(f"Here is the research:\n{research}"),
            ]
        )

    async def review(self, draft: str) -> str:
        return await self.completion.complete(
            [
                ChatMessage.system(REVIEWER_SYSTEM_PROMPT),
                ChatMessage.human(f"Here is the draft:\n{draft}"),
            ]
        )

    async def _run_stage(
        self,
        trace: Pipeline,
        category: StageCategory,
        session_id: str | None,
        work: Awaitable[str],
    ) -> tuple[str, Pipeline]:
        start = datetime.now(UTC)
        try:
            text = await work
        except Exception as exc:
            failed = trace.append(
                FailedStage(
                    status=StageStatus.FAILED,
                    category=category,
                    error_category=categorize_error(exc),
                    name=StageName(category.value),
                    error=ErrorMessage.from_exception(exc),
                    start_time=start,
                    end_time=datetime.now(UTC),
                )
            )
            logger.error("Content pipeline %s stage failed: %s", category, exc, extra=failed.to_log_attributes().root)
            self._announce(session_id, lambda sid: self.bus.emit_error(sid, f"{category.value.capitalize()} failed: {exc}"))
            raise PipelineStageError(category, exc, failed) from exc

        stage = SuccessStage(
            status=StageStatus.SUCCESS,
            category=category,
            name=StageName(category.value),
            data=StageOutput(text=text),
            start_time=start,
            end_time=datetime.now(UTC),
        )
        return text, trace.append(stage)

    @staticmethod
    def _announce(session_id: str | None, emit: Callable[[str], object]) -> None:
        if session_id:
            emit(session_id)


__all__ = [
    "ContentPipelineResult",
    "PipelineOrchestrator",
    "REVIEWER_SYSTEM_PROMPT",
    "WRITER_SYSTEM_PROMPT",
    "categorize_error",
    "writer_instruction",
]
