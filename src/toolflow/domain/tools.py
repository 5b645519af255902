"""Domain Tools - Built-in Capabilities Registered at Start-up.

Each tool is an async function taking one string and returning one string.
Tools raise on failure so the execution engine can walk the fallback chain;
they do not swallow errors into their output.

Built-in Tools:
    web-search: Tavily web search (needs TAVILY_API_KEY)
    encyclopedia: Wikipedia page summaries via the REST API
    calculator: Arithmetic through a whitelisted AST evaluator
    statistics: Descriptive statistics over a list of numbers

Configuration-bound tools (web-search, encyclopedia) are built by factories
so API keys and timeouts are passed in explicitly rather than read from a
global.
"""

from __future__ import annotations

import ast
import json
import math
import operator
import re
import statistics as stats
from typing import Any
from urllib.parse import quote

import httpx

from .domain_type import BuiltinTool, ToolCategory
from .errors import ToolUnavailableError
from .tool_catalog import ToolCatalog, ToolDescriptor, ToolFunc

# Marker the web-search tool puts in its output when nothing was found.
# The research stage treats text containing it as a soft failure.
NO_WEB_RESULTS = "No web results found"

WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/{title}"
WIKIPEDIA_SEARCH_URL = "https://en.wikipedia.org/w/api.php"
DEFAULT_USER_AGENT = "toolflow/0.1 (research assistant)"


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

# Integer results are capped so one expression cannot stall the event loop
MAX_RESULT_BITS = 10_000
MAX_FACTORIAL = 1000


class ExpressionTooLargeError(ValueError):
    """The expression would produce a number beyond MAX_RESULT_BITS."""


def _bounded_pow(base: Any, exponent: Any) -> Any:
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0 and abs(base) > 1:
        if exponent * math.log2(abs(base)) > MAX_RESULT_BITS:
            raise ExpressionTooLargeError(f"Result of {base} ** {exponent} is too large")
    return operator.pow(base, exponent)


def _bounded_factorial(value: Any) -> int:
    if isinstance(value, int | float) and value > MAX_FACTORIAL:
        raise ExpressionTooLargeError(f"factorial argument must be at most {MAX_FACTORIAL}")
    return math.factorial(value)


def _check_size(value: Any) -> Any:
    if isinstance(value, int) and value.bit_length() > MAX_RESULT_BITS:
        raise ExpressionTooLargeError("Result is too large")
    return value


# Whitelist of safe binary/unary operators
_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Pow: _bounded_pow,
    ast.Mod: operator.mod,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

# The ONLY names an expression may reference
_SAFE_NAMES: dict[str, Any] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "factorial": _bounded_factorial,
    "log": math.log10,
    "ln": math.log,
    "exp": math.exp,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "pi": math.pi,
    "e": math.e,
}

# Longest arithmetic-looking run inside free text ("what is 5 * (3 + 2)?")
_MATH_SPAN = re.compile(r"[\d.\s()+\-*/%^]*\d[\d.\s()+\-*/%^]*")


def _eval_node(node: ast.expr) -> Any:
    """Recursively evaluate an AST node, rejecting anything not whitelisted."""
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, int | float):
            raise ValueError(f"Unsupported constant: {node.value!r}")
        return node.value

    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        return _check_size(_OPERATORS[type(node.op)](_eval_node(node.left), _eval_node(node.right)))

    if isinstance(node, ast.UnaryOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_eval_node(node.operand))

    if isinstance(node, ast.Call):
        # Only simple named functions, no attribute access
        if not isinstance(node.func, ast.Name):
            raise ValueError("Only named functions allowed")
        func = _SAFE_NAMES.get(node.func.id)
        if func is None or not callable(func):
            raise ValueError(f"Function {node.func.id} not allowed")
        return _check_size(func(*(_eval_node(arg) for arg in node.args)))

    if isinstance(node, ast.Name):
        value = _SAFE_NAMES.get(node.id)
        if value is None or callable(value):
            raise ValueError(f"Name {node.id} not allowed")
        return value

    raise ValueError(f"Unsupported operation: {type(node).__name__}")


def evaluate_expression(expression: str) -> float | int:
    """Evaluate a math expression safely.

    Accepts a bare expression ("sqrt(16) + 2") or free text containing one
    ("Calculate 5 + 3"). '^' is read as exponentiation.

    Raises:
        ExpressionTooLargeError: The expression would overflow MAX_RESULT_BITS
        ValueError: No evaluable expression found
    """
    text = expression.strip().replace("^", "**")
    if not text:
        raise ValueError("Empty expression")

    try:
        return _eval_node(ast.parse(text, mode="eval").body)
    except ExpressionTooLargeError:
        raise
    except (SyntaxError, ValueError):
        pass

    spans = sorted((m.group().strip() for m in _MATH_SPAN.finditer(expression)), key=len, reverse=True)
    for span in spans:
        try:
            return _eval_node(ast.parse(span.replace("^", "**"), mode="eval").body)
        except ExpressionTooLargeError:
            raise
        except (SyntaxError, ValueError):
            continue
    raise ValueError(f"No valid mathematical expression in: {expression!r}")


async def calculator(expression: str) -> str:
    """Perform mathematical calculations and numerical computations.

    Examples:
        >>> await calculator("5 + 3 * 2")
        'Result: 11'
        >>> await calculator("factorial(5)")
        'Result: 120'
    """
    try:
        value = evaluate_expression(expression)
    except (ArithmeticError, TypeError) as exc:
        raise ValueError(f"Calculation error: {exc}") from exc
    try:
        return f"Result: {value}"
    except ValueError as exc:
        # int-to-str digit limit
        raise ExpressionTooLargeError(f"Calculation error: {exc}") from exc


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def parse_numbers(text: str) -> list[float]:
    """Numbers from a JSON array, or every number appearing in free text."""
    stripped = text.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        try:
            values = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON array: {exc}") from exc
        if not all(isinstance(v, int | float) and not isinstance(v, bool) for v in values):
            raise ValueError("JSON array must contain only numbers")
        return [float(v) for v in values]
    return [float(match) for match in _NUMBER.findall(stripped)]


async def statistics(data: str) -> str:
    """Calculate count, sum, mean, median, spread and range of a dataset."""
    numbers = parse_numbers(data)
    if not numbers:
        raise ValueError("Provide numbers separated by commas or as a JSON array")

    mean = stats.fmean(numbers)
    lowest, highest = min(numbers), max(numbers)
    lines = [
        "Statistical Analysis:",
        f"Count: {len(numbers)}",
        f"Sum: {sum(numbers):.2f}",
        f"Mean: {mean:.2f}",
        f"Median: {stats.median(numbers):.2f}",
        f"Standard Deviation: {stats.pstdev(numbers):.2f}",
        f"Variance: {stats.pvariance(numbers):.2f}",
        f"Min: {lowest:g}",
        f"Max: {highest:g}",
        f"Range: {highest - lowest:.2f}",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Web search (Tavily)
# ---------------------------------------------------------------------------


def format_search_response(query: str, response: dict[str, Any] | None) -> str:
    """Render a Tavily response for LLM consumption: summary plus top 5 sources."""
    if not response or not response.get("results"):
        return f"{NO_WEB_RESULTS} for query: '{query}'"

    parts = []
    if response.get("answer"):
        parts.append(f"Summary: {response['answer']}\n")

    parts.append("Sources:")
    for i, result in enumerate(response["results"][:5], 1):
        title = result.get("title", "Untitled")
        url = result.get("url", "")
        # ~200 chars keeps the context small
        snippet = result.get("content", "")[:200]
        parts.append(f"{i}. {title}\n   {snippet}...\n   {url}\n")

    return "\n".join(parts)


def make_web_search(api_key: str | None) -> ToolFunc:
    """Build the web-search tool bound to a Tavily API key."""

    async def web_search(query: str) -> str:
        """Fetch up-to-date, web-grounded results via Tavily."""
        if not api_key:
            raise ToolUnavailableError("Tavily API key not configured")

        from tavily import AsyncTavilyClient

        client = AsyncTavilyClient(api_key=api_key)
        response = await client.search(
            query=query,
            max_results=5,
            search_depth="basic",
            include_answer=True,
            include_raw_content=False,
        )
        return format_search_response(query, response)

    return web_search


# ---------------------------------------------------------------------------
# Encyclopedia (Wikipedia)
# ---------------------------------------------------------------------------


def format_wikipedia_summary(data: dict[str, Any]) -> str:
    title = data.get("title", "")
    if data.get("type") == "disambiguation":
        return (
            f'"{title}" is a disambiguation page. Please be more specific. '
            f"Some options include: {data.get('extract', '')}"
        )

    result = f"**{title}**\n\n"
    if data.get("extract"):
        result += f"{data['extract']}\n\n"
    page_url = ((data.get("content_urls") or {}).get("desktop") or {}).get("page")
    if page_url:
        result += f"Source: {page_url}"
    return result.strip()


def make_encyclopedia(timeout: float = 15.0, user_agent: str = DEFAULT_USER_AGENT) -> ToolFunc:
    """Build the encyclopedia tool.

    Tries the page summary for the query as a title first; on a miss, runs a
    full-text search and summarizes the best hit.
    """

    async def encyclopedia(query: str) -> str:
        """Search Wikipedia for structured, encyclopedic information."""
        headers = {"User-Agent": user_agent}
        async with httpx.AsyncClient(timeout=timeout, headers=headers) as client:
            response = await client.get(WIKIPEDIA_SUMMARY_URL.format(title=quote(query, safe="")))
            if response.status_code == 200:
                return format_wikipedia_summary(response.json())

            search = await client.get(
                WIKIPEDIA_SEARCH_URL,
                params={"action": "query", "list": "search", "srsearch": query, "format": "json", "srlimit": 1},
            )
            search.raise_for_status()
            hits = (search.json().get("query") or {}).get("search") or []
            if not hits:
                return "No Wikipedia articles found for this query."

            title = hits[0]["title"]
            page = await client.get(WIKIPEDIA_SUMMARY_URL.format(title=quote(title, safe="")))
            page.raise_for_status()
            return format_wikipedia_summary(page.json())

    return encyclopedia


# ---------------------------------------------------------------------------
# Default registrations
# ---------------------------------------------------------------------------

WEB_SEARCH_DESCRIPTOR = ToolDescriptor(
    name=BuiltinTool.WEB_SEARCH,
    description="Fetch up-to-date, web-grounded answers from a web search.",
    category=ToolCategory.SEARCH,
    priority=10,
    keywords=frozenset({"search", "web", "current", "news", "recent", "online", "internet"}),
    fallback_chain=(BuiltinTool.ENCYCLOPEDIA,),
)

ENCYCLOPEDIA_DESCRIPTOR = ToolDescriptor(
    name=BuiltinTool.ENCYCLOPEDIA,
    description="Search Wikipedia for structured knowledge and encyclopedic information.",
    category=ToolCategory.KNOWLEDGE,
    priority=8,
    keywords=frozenset({"wikipedia", "definition", "explain", "encyclopedia", "knowledge", "facts"}),
    fallback_chain=(BuiltinTool.WEB_SEARCH,),
)

CALCULATOR_DESCRIPTOR = ToolDescriptor(
    name=BuiltinTool.CALCULATOR,
    description="Perform mathematical calculations and numerical computations.",
    category=ToolCategory.COMPUTATION,
    priority=9,
    keywords=frozenset({"calculate", "math", "compute", "arithmetic", "equation", "formula"}),
)

STATISTICS_DESCRIPTOR = ToolDescriptor(
    name=BuiltinTool.STATISTICS,
    description="Calculate statistical measures for datasets.",
    category=ToolCategory.COMPUTATION,
    priority=7,
    keywords=frozenset({"statistics", "mean", "median", "average", "data", "analysis"}),
    fallback_chain=(BuiltinTool.CALCULATOR,),
)


def build_default_catalog(
    *,
    tavily_api_key: str | None,
    http_timeout: float = 15.0,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ToolCatalog:
    """Catalog with the four built-in tools, in their canonical order."""
    catalog = ToolCatalog()
    catalog.register(WEB_SEARCH_DESCRIPTOR, make_web_search(tavily_api_key))
    catalog.register(ENCYCLOPEDIA_DESCRIPTOR, make_encyclopedia(http_timeout, user_agent))
    catalog.register(CALCULATOR_DESCRIPTOR, calculator)
    catalog.register(STATISTICS_DESCRIPTOR, statistics)
    return catalog


__all__ = [
    "CALCULATOR_DESCRIPTOR",
    "ENCYCLOPEDIA_DESCRIPTOR",
    "ExpressionTooLargeError",
    "MAX_FACTORIAL",
    "MAX_RESULT_BITS",
    "NO_WEB_RESULTS",
    "STATISTICS_DESCRIPTOR",
    "WEB_SEARCH_DESCRIPTOR",
    "WIKIPEDIA_SEARCH_URL",
    "build_default_catalog",
    "calculator",
    "evaluate_expression",
    "format_search_response",
    "make_encyclopedia",
    "make_web_search",
    "parse_numbers",
    "statistics",
]
