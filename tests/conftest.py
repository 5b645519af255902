"""
Shared test fixtures and configuration.

Environment strategy:
- Unit tests: Use .env.test (isolated, no real providers needed)
- Integration tests: Same file; the HTTP surface runs against fake collaborators
"""

from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import pytest
from dotenv import load_dotenv

ENV_FILE = Path(__file__).parent.parent / ".env.test"

load_dotenv(ENV_FILE, override=True)

from toolflow.domain.domain_type import ToolCategory
from toolflow.domain.domain_value import ChatMessage
from toolflow.domain.execution import ExecutionEngine, ResultCache
from toolflow.domain.progress import ProgressBus
from toolflow.domain.tool_catalog import ToolCatalog, ToolDescriptor


class FakeTool:
    """Async tool double that records inputs and returns or raises on demand."""

    def __init__(self, output: str = "ok", error: Exception | None = None):
        self.output = output
        self.error = error
        self.calls: list[str] = []

    async def __call__(self, tool_input: str) -> str:
        self.calls.append(tool_input)
        if self.error is not None:
            raise self.error
        return self.output


class FakeCompletion:
    """CompletionModel double returning scripted replies in order."""

    def __init__(self, *replies: str | Exception):
        self.replies = list(replies)
        self.calls: list[list[ChatMessage]] = []

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        first, *rest = (await self.complete(messages)).split(" ")
        yield first
        for word in rest:
            yield f" {word}"


class FakeResearcher:
    """Researcher double."""

    def __init__(self, output: str = "agent research"):
        self.output = output
        self.queries: list[str] = []

    async def research(self, query: str) -> str:
        self.queries.append(query)
        return self.output


class ManualClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def descriptor(
    name: str,
    category: ToolCategory = ToolCategory.SEARCH,
    priority: int = 0,
    keywords: set[str] | None = None,
    fallback_chain: tuple[str, ...] = (),
) -> ToolDescriptor:
    """Build a ToolDescriptor with test defaults."""
    return ToolDescriptor(
        name=name,
        description=f"{name} tool",
        category=category,
        priority=priority,
        keywords=frozenset(keywords or ()),
        fallback_chain=fallback_chain,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def cache(clock: ManualClock) -> ResultCache:
    return ResultCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def catalog() -> ToolCatalog:
    """Empty catalog; tests register the tools they need."""
    return ToolCatalog()


@pytest.fixture
def engine(catalog: ToolCatalog, cache: ResultCache) -> ExecutionEngine:
    return ExecutionEngine(catalog=catalog, cache=cache)


@pytest.fixture
def bus() -> ProgressBus:
    return ProgressBus(queue_size=10)
