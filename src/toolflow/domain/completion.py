"""Completion Collaborators - LLM Access Behind Small Protocols.

The content pipeline talks to language models only through two protocols:

    CompletionModel: role-tagged messages in, text out (whole or streamed)
    Researcher: query in, researched text out (may call tools on its own)

Concrete implementations wrap Pydantic AI agents. Agents are created lazily
on first use, so building the service never needs provider credentials;
only actually calling the model does.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic_ai.messages import ModelMessage, ModelRequest, SystemPromptPart, UserPromptPart
from pydantic_ai.usage import UsageLimits

from .domain_type import MessageRole
from .domain_value import ChatMessage
from .tool_catalog import ToolCatalog

if TYPE_CHECKING:
    from pydantic_ai import Agent
    from pydantic_ai.models import Model

logger = logging.getLogger(__name__)

RESEARCH_AGENT_SYSTEM_PROMPT = """
You are a research assistant. Use the web search tool to collect the key,
current facts about the user's topic. Call the tool at most once, then
summarize the findings with concrete details and sources.
""".strip()

# Used for plain chat when the caller sends no instructions of their own
CHAT_SYSTEM_PROMPT = "You are a helpful assistant."


@runtime_checkable
class CompletionModel(Protocol):
    """Generative completion collaborator."""

    async def complete(self, messages: Sequence[ChatMessage]) -> str: ...

    def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]: ...


@runtime_checkable
class Researcher(Protocol):
    """Tool-using research loop used when the direct search call fails."""

    async def research(self, query: str) -> str: ...


def to_agent_messages(messages: Sequence[ChatMessage]) -> tuple[list[ModelMessage], str]:
    """Split role-tagged messages into (history, prompt) for Agent.run().

    The last human message becomes the user prompt; every earlier message,
    in order, goes into a single request used as message history.

    Raises:
        ValueError: No human message to prompt with
    """
    last_human = max((i for i, msg in enumerate(messages) if msg.role == MessageRole.HUMAN), default=None)
    if last_human is None:
        raise ValueError("Completion requires at least one human message")

    parts: list[SystemPromptPart | UserPromptPart] = []
    for msg in messages[:last_human]:
        if msg.role == MessageRole.SYSTEM:
            parts.append(SystemPromptPart(content=msg.content))
        else:
            parts.append(UserPromptPart(content=msg.content))

    history: list[ModelMessage] = [ModelRequest(parts=parts)] if parts else []
    return history, messages[last_human].content


def with_default_system(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    """Prefix CHAT_SYSTEM_PROMPT unless the conversation already has a system message."""
    if any(msg.role == MessageRole.SYSTEM for msg in messages):
        return list(messages)
    return [ChatMessage.system(CHAT_SYSTEM_PROMPT), *messages]


class AgentCompletion:
    """CompletionModel backed by a Pydantic AI agent.

    Args:
        model: Pydantic AI model or "vendor:model" string
    """

    def __init__(self, model: Model | str) -> None:
        self.model = model
        self._agent: Agent[None, str] | None = None

    @property
    def agent(self) -> Agent[None, str]:
        """Lazy-initialized agent (cached)."""
        if self._agent is None:
            from pydantic_ai import Agent

            self._agent = Agent(self.model, output_type=str)
        return self._agent

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        history, prompt = to_agent_messages(messages)
        result = await self.agent.run(prompt, message_history=history or None)
        return result.output

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Yield the reply text in chunks as the model produces it."""
        history, prompt = to_agent_messages(messages)
        async with self.agent.run_stream(prompt, message_history=history or None) as result:
            async for chunk in result.stream_text(delta=True, debounce_by=None):
                yield chunk


class ToolLoopResearcher:
    """Researcher that lets a model call one catalog tool, bounded in turns.

    The agent sees exactly one tool (the catalog entry named tool_name) and
    may make at most max_iterations model requests: typically one that calls
    the tool and one that writes the answer. Exceeding the bound raises.

    Args:
        model: Pydantic AI model or "vendor:model" string
        catalog: Where the tool is looked up at call time
        tool_name: Catalog name of the only tool exposed to the model
        max_iterations: Upper bound on model requests per research call
    """

    def __init__(
        self,
        model: Model | str,
        catalog: ToolCatalog,
        tool_name: str,
        max_iterations: int = 2,
    ) -> None:
        self.model = model
        self.catalog = catalog
        self.tool_name = tool_name
        self.max_iterations = max_iterations
        self._agent: Agent[None, str] | None = None

    @property
    def agent(self) -> Agent[None, str]:
        if self._agent is None:
            from pydantic_ai import Agent, Tool

            registered = self.catalog.get(self.tool_name)

            async def search(query: str) -> str:
                return await registered.invoke(query)

            self._agent = Agent(
                self.model,
                output_type=str,
                system_prompt=RESEARCH_AGENT_SYSTEM_PROMPT,
                tools=[
                    Tool(
                        search,
                        takes_ctx=False,
                        name=self.tool_name.replace("-", "_"),
                        description=registered.descriptor.description,
                    )
                ],
            )
        return self._agent

    async def research(self, query: str) -> str:
        logger.info("Running tool-using research loop (max %d requests)", self.max_iterations)
        result = await self.agent.run(query, usage_limits=UsageLimits(request_limit=self.max_iterations))
        return result.output


__all__ = [
    "CHAT_SYSTEM_PROMPT",
    "AgentCompletion",
    "CompletionModel",
    "Researcher",
    "ToolLoopResearcher",
    "to_agent_messages",
    "with_default_system",
]
