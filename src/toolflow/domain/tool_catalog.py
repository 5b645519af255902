"""Tool Catalog - Registered Capabilities and Query-Driven Selection.

Holds every tool the process can call together with its static metadata,
and ranks tools against a free-text query.

Architecture:
    ToolCatalog: Process-wide registry, filled once at start-up
    ├─ RegisteredTool: Descriptor + async callable
    │  └─ ToolDescriptor: Name, category, priority, keywords, fallback chain
    └─ select_for_query(): Keyword/category/priority scoring, top 3

Scoring:
    score = 10 × keyword hits
          + 15 if the query carries the tool's own category cue
          + priority
    Tools scoring 0 are dropped. Ties keep registration order; the sort key
    carries the registration slot explicitly rather than relying on sort
    stability.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .domain_type import ToolCategory
from .errors import ToolNotFoundError

logger = logging.getLogger(__name__)

ToolFunc = Callable[[str], Awaitable[str]]

MAX_SELECTED_TOOLS = 3
KEYWORD_WEIGHT = 10
CATEGORY_CUE_BONUS = 15

_DIGITS = re.compile(r"\d+")


def _search_cue(query: str) -> bool:
    return "search" in query or "find" in query or "look up" in query


def _computation_cue(query: str) -> bool:
    return "calculate" in query or "compute" in query or _DIGITS.search(query) is not None


def _knowledge_cue(query: str) -> bool:
    return "wikipedia" in query or "definition" in query or "explain" in query


# Category cue detectors, applied to the lower-cased query.
# ANALYSIS has no cue; analysis tools score on keywords and priority only.
CATEGORY_CUES: dict[ToolCategory, Callable[[str], bool]] = {
    ToolCategory.SEARCH: _search_cue,
    ToolCategory.COMPUTATION: _computation_cue,
    ToolCategory.KNOWLEDGE: _knowledge_cue,
}


class ToolDescriptor(BaseModel):
    """Static metadata for one tool.

    Attributes:
        name: Unique catalog key (letters, digits, hyphen, underscore)
        description: Human-readable summary, also shown to LLMs
        category: Functional family for cue scoring
        priority: Flat score bonus, also the tie-breaker of last resort
        keywords: Lower-cased substrings that vote for this tool
        fallback_chain: Tools tried, in order, when this one fails
    """

    name: str = Field(min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str
    category: ToolCategory
    priority: int = 0
    keywords: frozenset[str] = frozenset()
    fallback_chain: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    def score(self, query: str) -> int:
        """Relevance of this tool for query (higher is better, 0 means none)."""
        query_lower = query.lower()
        hits = sum(1 for keyword in self.keywords if keyword.lower() in query_lower)
        total = KEYWORD_WEIGHT * hits

        cue = CATEGORY_CUES.get(self.category)
        if cue is not None and cue(query_lower):
            total += CATEGORY_CUE_BONUS

        return total + self.priority


class RegisteredTool(BaseModel):
    """Descriptor bound to the coroutine function that implements it."""

    descriptor: ToolDescriptor
    func: ToolFunc

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def invoke(self, tool_input: str) -> str:
        return await self.func(tool_input)


class ToolCatalog(BaseModel):
    """Registry of tools, keyed by name.

    Registration is expected at start-up only; afterwards the catalog is
    read-mostly and shared by every request without locking.

    Re-registering a name replaces the descriptor and callable but keeps
    the slot assigned on first registration, so tie-break order does not
    move when a tool is hot-swapped.

    Example:
        >>> catalog = ToolCatalog()
        >>> catalog.register(ToolDescriptor(name="calculator", ...), calculator)
        >>> catalog.select_for_query("calculate 2 + 2")
        ['calculator']
    """

    _tools: dict[str, RegisteredTool] = PrivateAttr(default_factory=dict)
    _slots: dict[str, int] = PrivateAttr(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def register(self, descriptor: ToolDescriptor, func: ToolFunc) -> None:
        """Upsert a tool by name."""
        if descriptor.name in self._tools:
            logger.warning("Tool %s re-registered; replacing previous entry", descriptor.name)
        else:
            self._slots[descriptor.name] = len(self._slots)
        self._tools[descriptor.name] = RegisteredTool(descriptor=descriptor, func=func)

    def get(self, name: str) -> RegisteredTool:
        """Look up a tool.

        Raises:
            ToolNotFoundError: If name is not registered
        """
        registered = self._tools.get(name)
        if registered is None:
            raise ToolNotFoundError(name)
        return registered

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def all(self) -> tuple[ToolDescriptor, ...]:
        """Snapshot of every descriptor, in registration order."""
        return tuple(self._tools[name].descriptor for name in self._ordered_names())

    def by_category(self, category: ToolCategory) -> tuple[ToolDescriptor, ...]:
        return tuple(descriptor for descriptor in self.all() if descriptor.category == category)

    def select_for_query(self, query: str) -> list[str]:
        """Rank tools against query and return at most three names, best first."""
        scored: list[tuple[int, int, str]] = []
        for name in self._ordered_names():
            score = self._tools[name].descriptor.score(query)
            if score > 0:
                scored.append((score, self._slots[name], name))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [name for _, _, name in scored[:MAX_SELECTED_TOOLS]]

    def _ordered_names(self) -> list[str]:
        return sorted(self._tools, key=self._slots.__getitem__)


__all__ = [
    "CATEGORY_CUES",
    "RegisteredTool",
    "ToolCatalog",
    "ToolDescriptor",
    "ToolFunc",
]
