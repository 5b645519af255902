"""Unit tests for the Pydantic AI backed completion collaborators.

Uses FunctionModel so every model turn is scripted locally.
"""

from collections.abc import AsyncIterator

import pytest
from pydantic_ai.exceptions import UsageLimitExceeded
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel

from tests.conftest import FakeTool, descriptor
from toolflow.domain.completion import (
    CHAT_SYSTEM_PROMPT,
    AgentCompletion,
    CompletionModel,
    Researcher,
    ToolLoopResearcher,
    to_agent_messages,
    with_default_system,
)
from toolflow.domain.domain_type import BuiltinTool
from toolflow.domain.domain_value import ChatMessage
from toolflow.domain.tool_catalog import ToolCatalog


class TestToAgentMessages:
    def test_last_human_message_becomes_prompt(self):
        history, prompt = to_agent_messages(
            [ChatMessage.system("be brief"), ChatMessage.human("first"), ChatMessage.human("second")]
        )

        assert prompt == "second"
        assert len(history) == 1
        request = history[0]
        assert isinstance(request, ModelRequest)
        assert isinstance(request.parts[0], SystemPromptPart)
        assert request.parts[0].content == "be brief"
        assert isinstance(request.parts[1], UserPromptPart)
        assert request.parts[1].content == "first"

    def test_single_human_message_has_no_history(self):
        assert to_agent_messages([ChatMessage.human("hi")]) == ([], "hi")

    def test_requires_a_human_message(self):
        with pytest.raises(ValueError, match="human message"):
            to_agent_messages([ChatMessage.system("only instructions")])


class TestWithDefaultSystem:
    def test_adds_assistant_instruction(self):
        messages = with_default_system([ChatMessage.human("hi")])

        assert messages == [ChatMessage.system(CHAT_SYSTEM_PROMPT), ChatMessage.human("hi")]

    def test_caller_instruction_wins(self):
        original = [ChatMessage.system("be terse"), ChatMessage.human("hi")]

        assert with_default_system(original) == original


class TestAgentCompletion:
    @pytest.mark.asyncio
    async def test_complete_returns_model_text(self):
        prompts: list[str] = []

        def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            last = messages[-1]
            prompts.extend(part.content for part in last.parts if isinstance(part, UserPromptPart))
            return ModelResponse(parts=[TextPart(content="# Draft")])

        completion = AgentCompletion(FunctionModel(model))

        output = await completion.complete([ChatMessage.system("write markdown"), ChatMessage.human("research notes")])

        assert output == "# Draft"
        assert prompts == ["research notes"]

    @pytest.mark.asyncio
    async def test_stream_yields_text_deltas(self):
        def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            return ModelResponse(parts=[TextPart(content="unused")])

        async def stream_model(messages: list[ModelMessage], info: AgentInfo) -> AsyncIterator[str]:
            for chunk in ("# Dr", "aft", " ready"):
                yield chunk

        completion = AgentCompletion(FunctionModel(model, stream_function=stream_model))

        chunks = [chunk async for chunk in completion.stream([ChatMessage.human("notes")])]

        assert "".join(chunks) == "# Draft ready"

    def test_agent_is_created_once(self):
        completion = AgentCompletion("test")

        assert completion.agent is completion.agent

    def test_satisfies_protocol(self):
        assert isinstance(AgentCompletion("test"), CompletionModel)


class TestToolLoopResearcher:
    @pytest.fixture
    def search(self) -> FakeTool:
        return FakeTool("Summary: fusion milestones")

    @pytest.fixture
    def search_catalog(self, catalog: ToolCatalog, search: FakeTool) -> ToolCatalog:
        catalog.register(descriptor(BuiltinTool.WEB_SEARCH), search)
        return catalog

    @pytest.mark.asyncio
    async def test_calls_tool_then_answers(self, search_catalog: ToolCatalog, search: FakeTool):
        tool_names: list[str] = []

        def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            if not any(isinstance(part, ToolReturnPart) for message in messages for part in message.parts):
                tool_names.extend(tool.name for tool in info.function_tools)
                return ModelResponse(parts=[ToolCallPart(tool_name="web_search", args={"query": "fusion"})])
            return ModelResponse(parts=[TextPart(content="Fusion research summary")])

        researcher = ToolLoopResearcher(FunctionModel(model), search_catalog, BuiltinTool.WEB_SEARCH)

        output = await researcher.research("fusion")

        assert output == "Fusion research summary"
        assert tool_names == ["web_search"]
        assert search.calls == ["fusion"]

    @pytest.mark.asyncio
    async def test_request_budget_is_enforced(self, search_catalog: ToolCatalog):
        def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            return ModelResponse(parts=[ToolCallPart(tool_name="web_search", args={"query": "again"})])

        researcher = ToolLoopResearcher(FunctionModel(model), search_catalog, BuiltinTool.WEB_SEARCH, max_iterations=2)

        with pytest.raises(UsageLimitExceeded):
            await researcher.research("fusion")

    def test_satisfies_protocol(self, search_catalog: ToolCatalog):
        assert isinstance(ToolLoopResearcher("test", search_catalog, BuiltinTool.WEB_SEARCH), Researcher)
