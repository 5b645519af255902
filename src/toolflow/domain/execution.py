"""Execution Engine - Cached, Fallback-Aware Tool Invocation.

Runs tools from the catalog. Two entry points:

    execute_with_cache(): One tool, TTL cache in front, fallback chain behind
    execute_in_parallel(): Many (tool, input) pairs at once, full join

Cache Semantics:
    Key: "<tool>:<input>" (tool names cannot contain ':', so keys are unique)
    Value: Last successful primary result
    TTL: Entries aged >= ttl_seconds are treated as absent
    Bound: None. Entries leave only via clear() or purge_expired()

    The cache is shared by all in-flight requests with no mutual exclusion.
    Last write wins; a lost write only costs a redundant tool call.

Outcome Types:
    Parallel results are tagged ToolSuccess | ToolFailure values rather than
    strings with an "Error: " prefix. as_text() renders the legacy string
    form for callers that want it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, RootModel

from .domain_type import OutcomeStatus
from .errors import AllFallbacksExhaustedError, ToolInvocationError
from .tool_catalog import RegisteredTool, ToolCatalog

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 5 * 60
EMPTY_RESULT_TEXT = "No result"
ERROR_PREFIX = "Error: "


def cache_key(tool_name: str, tool_input: str) -> str:
    return f"{tool_name}:{tool_input}"


class ResultCache(BaseModel):
    """TTL cache for tool results.

    Frozen model with a private mutable dict, the same shape as a client
    pool: configuration is immutable, the stored entries are infrastructure.

    Attributes:
        ttl_seconds: Maximum entry age
        clock: Monotonic time source (injectable for tests)
    """

    ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL_SECONDS, gt=0)
    clock: Callable[[], float] = time.monotonic
    _entries: dict[str, tuple[str, float]] = PrivateAttr(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def get(self, key: str) -> str | None:
        """Fresh value for key, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, inserted_at = entry
        if self.clock() - inserted_at >= self.ttl_seconds:
            return None
        return value

    def put(self, key: str, value: str) -> None:
        self._entries[key] = (value, self.clock())

    def clear(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        """Drop stale entries; returns how many were removed."""
        now = self.clock()
        stale = [key for key, (_, inserted_at) in self._entries.items() if now - inserted_at >= self.ttl_seconds]
        for key in stale:
            self._entries.pop(key, None)
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class ToolCall(BaseModel):
    """One (tool, input) pair for batch execution."""

    tool_name: str
    tool_input: str

    model_config = ConfigDict(frozen=True)


class ToolSuccess(BaseModel):
    """Tool produced output (possibly empty)."""

    status: Literal[OutcomeStatus.SUCCESS] = OutcomeStatus.SUCCESS
    tool: str
    output: str

    model_config = ConfigDict(frozen=True)

    def as_text(self) -> str:
        return self.output or EMPTY_RESULT_TEXT


class ToolFailure(BaseModel):
    """Tool (and its fallbacks) failed."""

    status: Literal[OutcomeStatus.FAILED] = OutcomeStatus.FAILED
    tool: str
    error: str

    model_config = ConfigDict(frozen=True)

    def as_text(self) -> str:
        return f"{ERROR_PREFIX}{self.error}"

    @classmethod
    def from_exception(cls, tool: str, exc: BaseException) -> ToolFailure:
        return cls(tool=tool, error=str(exc) or type(exc).__name__)


ToolOutcome = Annotated[ToolSuccess | ToolFailure, Field(discriminator="status")]


class ToolResults(RootModel[dict[str, ToolOutcome]]):
    """Outcome per tool name.

    Keyed by tool name: when a batch names the same tool twice, the entry
    listed later wins.
    """

    root: dict[str, ToolOutcome] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def __getitem__(self, tool: str) -> ToolSuccess | ToolFailure:
        return self.root[tool]

    def __contains__(self, tool: object) -> bool:
        return tool in self.root

    def __len__(self) -> int:
        return len(self.root)

    @property
    def failures(self) -> tuple[str, ...]:
        return tuple(name for name, outcome in self.root.items() if isinstance(outcome, ToolFailure))

    def as_text(self) -> dict[str, str]:
        """Legacy rendering: output, "No result" or "Error: <message>"."""
        return {name: outcome.as_text() for name, outcome in self.root.items()}

    def merged(self, outcome: ToolSuccess | ToolFailure) -> ToolResults:
        return ToolResults({**self.root, outcome.tool: outcome})


class ExecutionEngine(BaseModel):
    """Invokes catalog tools with caching, fallbacks and concurrent fan-out.

    Attributes:
        catalog: Source of tools and their fallback chains
        cache: Shared TTL result cache
    """

    catalog: ToolCatalog
    cache: ResultCache = Field(default_factory=ResultCache)

    model_config = ConfigDict(frozen=True)

    async def execute_with_cache(self, tool_name: str, tool_input: str) -> str:
        """Run one tool, serving fresh cached results and falling back on failure.

        Flow:
            1. Resolve tool (ToolNotFoundError if unregistered)
            2. Fresh cache hit → return without invoking
            3. Invoke; on success cache under the original key and return
            4. On failure, invoke each fallback directly, in chain order;
               first success is returned and not cached
            5. Everything failed → AllFallbacksExhaustedError carrying the
               primary tool's error

        Raises:
            ToolNotFoundError: tool_name is not registered
            AllFallbacksExhaustedError: Primary and all fallbacks failed
        """
        registered = self.catalog.get(tool_name)
        key = cache_key(tool_name, tool_input)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", tool_name)
            return cached

        try:
            result = await self._invoke(registered, tool_input)
        except ToolInvocationError as primary_error:
            return await self._run_fallbacks(registered, tool_input, primary_error)

        self.cache.put(key, result)
        return result

    async def execute_in_parallel(self, calls: Iterable[ToolCall]) -> ToolResults:
        """Run every call concurrently and wait for all of them to settle.

        Never raises for member failures: each becomes a ToolFailure.
        """
        batch = list(calls)
        outcomes = await asyncio.gather(*(self._settle(call) for call in batch))

        results: dict[str, ToolSuccess | ToolFailure] = {}
        for outcome in outcomes:
            results[outcome.tool] = outcome
        return ToolResults(results)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Tool result cache cleared")

    def purge_expired(self) -> int:
        purged = self.cache.purge_expired()
        logger.info("Purged %d expired tool results", purged)
        return purged

    async def _settle(self, call: ToolCall) -> ToolSuccess | ToolFailure:
        try:
            output = await self.execute_with_cache(call.tool_name, call.tool_input)
        except Exception as exc:
            logger.info("Parallel call to %s failed: %s", call.tool_name, exc)
            return ToolFailure.from_exception(call.tool_name, exc)
        return ToolSuccess(tool=call.tool_name, output=output)

    async def _invoke(self, registered: RegisteredTool, tool_input: str) -> str:
        try:
            return await registered.invoke(tool_input)
        except Exception as exc:
            raise ToolInvocationError(registered.name, exc) from exc

    async def _run_fallbacks(
        self,
        registered: RegisteredTool,
        tool_input: str,
        primary_error: ToolInvocationError,
    ) -> str:
        chain = registered.descriptor.fallback_chain
        logger.warning("Tool %s failed (%s); trying fallbacks %s", registered.name, primary_error, list(chain))

        attempted: list[str] = []
        for fallback_name in chain:
            if fallback_name not in self.catalog:
                logger.warning("Fallback %s for %s is not registered; skipping", fallback_name, registered.name)
                continue
            attempted.append(fallback_name)
            try:
                return await self._invoke(self.catalog.get(fallback_name), tool_input)
            except ToolInvocationError as fallback_error:
                logger.warning("Fallback %s failed: %s", fallback_name, fallback_error)

        raise AllFallbacksExhaustedError(registered.name, primary_error, tuple(attempted)) from primary_error.cause


__all__ = [
    "DEFAULT_CACHE_TTL_SECONDS",
    "ExecutionEngine",
    "ResultCache",
    "ToolCall",
    "ToolFailure",
    "ToolOutcome",
    "ToolResults",
    "ToolSuccess",
    "cache_key",
]
