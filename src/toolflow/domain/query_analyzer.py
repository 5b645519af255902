"""Query Analyzer - Intent Classification and Execution Strategy.

Turns a free-text query into a QueryAnalysis, then executes it.

Analysis Steps:
    1. Intent: count regex cue hits per family (search, knowledge,
       computation, analysis). Several active families → MIXED (0.8);
       none → SEARCH (0.5); otherwise the top family, confidence
       min(0.9, 0.6 + 0.1 × hits). Ties go to the family declared first.
    2. Parallel override: " and " / " also " / " plus " force
       parallelizable and split the query into trimmed sub-queries.
    3. Tools: fixed table per intent; MIXED defers to catalog scoring.
    4. Strategy: an explicit ExecutionStrategy derived from the above.

Execution:
    execute_optimal_strategy() dispatches on the strategy with a match
    statement; each branch is a small method.
"""

from __future__ import annotations

import logging
import re
import time

from pydantic import BaseModel, ConfigDict, Field

from .domain_type import BuiltinTool, ExecutionStrategy, QueryIntent
from .domain_value import QueryAnalysis
from .execution import ExecutionEngine, ToolCall, ToolFailure, ToolResults, ToolSuccess
from .tool_catalog import ToolCatalog

logger = logging.getLogger(__name__)

# Cue families in declared tie-break order (dict order is preserved).
INTENT_PATTERNS: dict[QueryIntent, tuple[re.Pattern[str], ...]] = {
    QueryIntent.SEARCH: tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"what is happening",
            r"latest news",
            r"current",
            r"recent",
            r"search for",
            r"find information",
            r"look up",
        )
    ),
    QueryIntent.KNOWLEDGE: tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"what is",
            r"define",
            r"explain",
            r"tell me about",
            r"wikipedia",
            r"definition of",
            r"meaning of",
        )
    ),
    QueryIntent.COMPUTATION: tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"calculate",
            r"compute",
            r"math",
            r"\d+[+\-*/]\d+",
            r"statistics",
            r"mean|median|average",
            r"standard deviation",
        )
    ),
    QueryIntent.ANALYSIS: tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"analyze",
            r"compare",
            r"contrast",
            r"evaluate",
            r"assess",
        )
    ),
}

CONNECTIVES = re.compile(r" and | also | plus ", re.IGNORECASE)

MIXED_CONFIDENCE = 0.8
DEFAULT_CONFIDENCE = 0.5
BASE_CONFIDENCE = 0.6
CONFIDENCE_STEP = 0.1
MAX_SINGLE_INTENT_CONFIDENCE = 0.9
SECONDARY_TOOL_THRESHOLD = 0.7

INTENT_TOOLS: dict[QueryIntent, tuple[str, ...]] = {
    QueryIntent.SEARCH: (BuiltinTool.WEB_SEARCH, BuiltinTool.ENCYCLOPEDIA),
    QueryIntent.KNOWLEDGE: (BuiltinTool.ENCYCLOPEDIA, BuiltinTool.WEB_SEARCH),
    QueryIntent.COMPUTATION: (BuiltinTool.CALCULATOR, BuiltinTool.STATISTICS),
    QueryIntent.ANALYSIS: (BuiltinTool.WEB_SEARCH, BuiltinTool.ENCYCLOPEDIA, BuiltinTool.STATISTICS),
}
DATA_COMPUTATION_TOOLS: tuple[str, ...] = (BuiltinTool.STATISTICS, BuiltinTool.CALCULATOR)
DEFAULT_TOOLS: tuple[str, ...] = (BuiltinTool.WEB_SEARCH,)


def count_intent_cues(query: str) -> dict[QueryIntent, int]:
    """Number of matching patterns per cue family, in declared order."""
    return {
        intent: sum(1 for pattern in patterns if pattern.search(query)) for intent, patterns in INTENT_PATTERNS.items()
    }


def classify_intent(query: str) -> tuple[QueryIntent, float, bool]:
    """Return (intent, confidence, parallelizable) from cue counts alone."""
    counts = count_intent_cues(query)
    active = [intent for intent, count in counts.items() if count > 0]

    if len(active) > 1:
        return QueryIntent.MIXED, MIXED_CONFIDENCE, True
    if not active:
        return QueryIntent.SEARCH, DEFAULT_CONFIDENCE, False

    intent = active[0]
    confidence = min(MAX_SINGLE_INTENT_CONFIDENCE, BASE_CONFIDENCE + CONFIDENCE_STEP * counts[intent])
    return intent, round(confidence, 4), False


def split_sub_queries(query: str) -> tuple[str, ...] | None:
    """Segments around connectives, trimmed; None when there is no connective.

    Empty segments (a query ending in " and ") are kept.
    """
    if not CONNECTIVES.search(query):
        return None
    return tuple(segment.strip() for segment in CONNECTIVES.split(query))


def choose_strategy(
    suggested_tools: tuple[str, ...],
    confidence: float,
    parallelizable: bool,
    sub_queries: tuple[str, ...] | None,
) -> ExecutionStrategy:
    if not suggested_tools:
        return ExecutionStrategy.NO_TOOLS
    if parallelizable and sub_queries:
        return ExecutionStrategy.PARALLEL
    if confidence < SECONDARY_TOOL_THRESHOLD and len(suggested_tools) > 1:
        return ExecutionStrategy.SERIAL_WITH_SECONDARY
    return ExecutionStrategy.SERIAL


class StrategyReport(BaseModel):
    """What execute_optimal_strategy() ran and how long it took."""

    results: ToolResults
    analysis: QueryAnalysis
    execution_time_ms: float = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class QueryAnalyzer(BaseModel):
    """Classifies queries and runs them through the execution engine.

    Attributes:
        catalog: Used for MIXED-intent tool selection
        engine: Runs the chosen tools
    """

    catalog: ToolCatalog
    engine: ExecutionEngine

    model_config = ConfigDict(frozen=True)

    def analyze(self, query: str) -> QueryAnalysis:
        intent, confidence, parallelizable = classify_intent(query)

        sub_queries = split_sub_queries(query)
        if sub_queries is not None:
            parallelizable = True

        suggested_tools = self.suggest_tools(intent, query)
        strategy = choose_strategy(suggested_tools, confidence, parallelizable, sub_queries)

        return QueryAnalysis(
            intent=intent,
            confidence=confidence,
            suggested_tools=suggested_tools,
            parallelizable=parallelizable,
            sub_queries=sub_queries,
            strategy=strategy,
        )

    def suggest_tools(self, intent: QueryIntent, query: str) -> tuple[str, ...]:
        if intent == QueryIntent.MIXED:
            return tuple(self.catalog.select_for_query(query))
        if intent == QueryIntent.COMPUTATION:
            query_lower = query.lower()
            if "statistics" in query_lower or "data" in query_lower:
                return DATA_COMPUTATION_TOOLS
        return INTENT_TOOLS.get(intent, DEFAULT_TOOLS)

    async def execute_optimal_strategy(self, query: str) -> StrategyReport:
        start = time.perf_counter()
        analysis = self.analyze(query)
        logger.info(
            "Query intent=%s confidence=%.2f strategy=%s tools=%s",
            analysis.intent,
            analysis.confidence,
            analysis.strategy,
            list(analysis.suggested_tools),
        )

        match analysis.strategy:
            case ExecutionStrategy.PARALLEL:
                results = await self._run_parallel(analysis)
            case ExecutionStrategy.SERIAL_WITH_SECONDARY:
                results = await self._run_serial(query, analysis, with_secondary=True)
            case ExecutionStrategy.SERIAL:
                results = await self._run_serial(query, analysis, with_secondary=False)
            case ExecutionStrategy.NO_TOOLS:
                results = ToolResults()

        elapsed_ms = (time.perf_counter() - start) * 1000
        return StrategyReport(results=results, analysis=analysis, execution_time_ms=elapsed_ms)

    async def _run_parallel(self, analysis: QueryAnalysis) -> ToolResults:
        tools = analysis.suggested_tools
        calls = [
            ToolCall(tool_name=tools[index % len(tools)], tool_input=sub_query)
            for index, sub_query in enumerate(analysis.sub_queries or ())
        ]
        return await self.engine.execute_in_parallel(calls)

    async def _run_serial(self, query: str, analysis: QueryAnalysis, *, with_secondary: bool) -> ToolResults:
        primary = analysis.suggested_tools[0]
        try:
            output = await self.engine.execute_with_cache(primary, query)
        except Exception as exc:
            logger.info("Primary tool %s failed: %s", primary, exc)
            return ToolResults({primary: ToolFailure.from_exception(primary, exc)})

        results = ToolResults({primary: ToolSuccess(tool=primary, output=output)})
        if not with_secondary:
            return results

        # Sequential, after the primary has answered
        secondary = analysis.suggested_tools[1]
        try:
            output = await self.engine.execute_with_cache(secondary, query)
        except Exception as exc:
            logger.info("Secondary tool %s failed: %s", secondary, exc)
            return results.merged(ToolFailure.from_exception(secondary, exc))
        return results.merged(ToolSuccess(tool=secondary, output=output))


__all__ = [
    "INTENT_PATTERNS",
    "INTENT_TOOLS",
    "QueryAnalyzer",
    "StrategyReport",
    "choose_strategy",
    "classify_intent",
    "count_intent_cues",
    "split_sub_queries",
]
