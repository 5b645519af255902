"""Unit tests for the Research → Write → Review pipeline.

Collaborators are fakes: a scripted completion model, a fake web-search
tool and a fake research loop. A bound progress channel records the
events the run publishes.
"""

import pytest

from tests.conftest import FakeCompletion, FakeResearcher, FakeTool, descriptor
from toolflow.domain.content_pipeline import PipelineOrchestrator, categorize_error, writer_instruction
from toolflow.domain.domain_type import BuiltinTool, ErrorCategory, MessageRole, ProgressStage, StageCategory, StageStatus
from toolflow.domain.errors import PipelineStageError, ToolUnavailableError
from toolflow.domain.pipeline import SuccessStage
from toolflow.domain.progress import ProgressBus
from toolflow.domain.tool_catalog import ToolCatalog

SESSION = "session-1"


@pytest.fixture
def search() -> FakeTool:
    return FakeTool("Summary: fusion is hot")


@pytest.fixture
def search_catalog(catalog: ToolCatalog, search: FakeTool) -> ToolCatalog:
    catalog.register(descriptor(BuiltinTool.WEB_SEARCH), search)
    return catalog


def stages_of(bus_events) -> list[ProgressStage | None]:
    return [event.stage for event in bus_events]


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_stages_chain_outputs(self, search_catalog: ToolCatalog, bus: ProgressBus):
        completion = FakeCompletion("draft text", "final text")
        orchestrator = PipelineOrchestrator(search_catalog, completion, bus)

        result = await orchestrator.run("fusion energy")

        assert result.research == "Summary: fusion is hot"
        assert result.draft == "draft text"
        assert result.final == "final text"
        # Write sees the research, review sees the draft
        assert "Summary: fusion is hot" in completion.calls[0][-1].content
        assert "draft text" in completion.calls[1][-1].content
        assert result.trace.succeeded is True
        assert result.trace.stage_categories == (StageCategory.RESEARCH, StageCategory.WRITING, StageCategory.REVIEW)

    @pytest.mark.asyncio
    async def test_events_in_stage_order(self, search_catalog: ToolCatalog, bus: ProgressBus):
        channel = bus.join(SESSION)
        orchestrator = PipelineOrchestrator(search_catalog, FakeCompletion("d", "f"), bus)

        await orchestrator.run("fusion energy", session_id=SESSION)

        assert stages_of(channel.drain()) == [
            ProgressStage.RESEARCHING,
            ProgressStage.WRITING,
            ProgressStage.REVIEWING,
            ProgressStage.COMPLETE,
        ]

    @pytest.mark.asyncio
    async def test_no_session_publishes_nothing(self, search_catalog: ToolCatalog, bus: ProgressBus):
        channel = bus.join(SESSION)
        orchestrator = PipelineOrchestrator(search_catalog, FakeCompletion("d", "f"), bus)

        await orchestrator.run("fusion energy")

        assert channel.drain() == []

    @pytest.mark.asyncio
    async def test_personalization_reaches_writer(self, search_catalog: ToolCatalog, bus: ProgressBus):
        completion = FakeCompletion("d", "f")
        orchestrator = PipelineOrchestrator(search_catalog, completion, bus)

        await orchestrator.run("fusion energy", personalization="a curious teenager")

        system = completion.calls[0][0]
        assert system.role == MessageRole.SYSTEM
        assert "a curious teenager" in system.content


class TestResearchStage:
    @pytest.mark.asyncio
    async def test_no_results_is_a_soft_failure(self, catalog: ToolCatalog, bus: ProgressBus):
        catalog.register(descriptor(BuiltinTool.WEB_SEARCH), FakeTool("No web results found for query: 'zzz'"))
        completion = FakeCompletion("d", "f")
        orchestrator = PipelineOrchestrator(catalog, completion, bus)

        result = await orchestrator.run("zzz")

        assert "couldn't find any current web content" in result.research
        assert result.final == "f"
        assert len(completion.calls) == 2

    @pytest.mark.asyncio
    async def test_failed_search_uses_research_loop(self, catalog: ToolCatalog, bus: ProgressBus):
        catalog.register(descriptor(BuiltinTool.WEB_SEARCH), FakeTool(error=ToolUnavailableError("no key")))
        researcher = FakeResearcher("agent findings")
        orchestrator = PipelineOrchestrator(catalog, FakeCompletion("d", "f"), bus, researcher=researcher)

        result = await orchestrator.run("fusion energy")

        assert researcher.queries == ["fusion energy"]
        assert result.research == "agent findings"

    @pytest.mark.asyncio
    async def test_failed_search_without_research_loop_fails_stage(self, catalog: ToolCatalog, bus: ProgressBus):
        catalog.register(descriptor(BuiltinTool.WEB_SEARCH), FakeTool(error=ToolUnavailableError("no key")))
        completion = FakeCompletion("d", "f")
        orchestrator = PipelineOrchestrator(catalog, completion, bus)

        with pytest.raises(PipelineStageError) as exc_info:
            await orchestrator.run("fusion energy")

        assert exc_info.value.stage == StageCategory.RESEARCH
        assert exc_info.value.trace.error_summary.root == {ErrorCategory.DEPENDENCY: 1}
        assert completion.calls == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_write_failure_stops_before_review(self, search_catalog: ToolCatalog, bus: ProgressBus):
        channel = bus.join(SESSION)
        completion = FakeCompletion(ConnectionError("provider unreachable"), "never used")
        orchestrator = PipelineOrchestrator(search_catalog, completion, bus)

        with pytest.raises(PipelineStageError) as exc_info:
            await orchestrator.run("fusion energy", session_id=SESSION)

        error = exc_info.value
        assert error.stage == StageCategory.WRITING
        assert isinstance(error.cause, ConnectionError)
        assert error.__cause__ is error.cause
        assert str(error) == "writing stage failed: provider unreachable"
        assert error.trace.stage_categories == (StageCategory.RESEARCH, StageCategory.WRITING)
        assert error.trace.failed is True
        assert len(completion.calls) == 1

        events = channel.drain()
        assert stages_of(events) == [ProgressStage.RESEARCHING, ProgressStage.WRITING, ProgressStage.ERROR]
        assert "provider unreachable" in events[-1].message

    @pytest.mark.asyncio
    async def test_review_failure_keeps_earlier_stages_in_trace(self, search_catalog: ToolCatalog, bus: ProgressBus):
        orchestrator = PipelineOrchestrator(search_catalog, FakeCompletion("draft", RuntimeError("bad")), bus)

        with pytest.raises(PipelineStageError) as exc_info:
            await orchestrator.run("fusion energy")

        trace = exc_info.value.trace
        assert trace.stage_categories == (StageCategory.RESEARCH, StageCategory.WRITING, StageCategory.REVIEW)
        assert isinstance(trace.stages[1], SuccessStage)
        assert trace.stages[1].data.text == "draft"
        assert trace.stages[-1].status == StageStatus.FAILED


class TestHelpers:
    def test_writer_instruction_without_personalization(self):
        assert "Tailor" not in writer_instruction(None)
        assert "Tailor" not in writer_instruction("   ")

    def test_error_categories(self):
        assert categorize_error(ToolUnavailableError("x")) == ErrorCategory.DEPENDENCY
        assert categorize_error(TimeoutError()) == ErrorCategory.EXTERNAL_SERVICE
        assert categorize_error(ValueError("x")) == ErrorCategory.UNKNOWN
