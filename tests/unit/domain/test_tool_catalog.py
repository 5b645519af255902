"""Unit tests for ToolCatalog registration and query scoring.

Tests focus on:
- Upsert semantics (overwrite keeps the original slot)
- Score composition: keywords, category cue, priority
- Ranking order, zero-score exclusion and the top-3 cap
"""

import pytest
from pydantic import ValidationError

from tests.conftest import FakeTool, descriptor
from toolflow.domain.domain_type import BuiltinTool, ToolCategory
from toolflow.domain.errors import ToolNotFoundError
from toolflow.domain.tool_catalog import ToolCatalog, ToolDescriptor
from toolflow.domain.tools import build_default_catalog


class TestRegistration:
    def test_get_unknown_tool_raises(self, catalog: ToolCatalog):
        with pytest.raises(ToolNotFoundError, match="Tool nope not found"):
            catalog.get("nope")

    def test_tool_not_found_is_a_key_error(self, catalog: ToolCatalog):
        with pytest.raises(KeyError):
            catalog.get("nope")

    def test_reregistering_overwrites_and_keeps_slot(self, catalog: ToolCatalog):
        catalog.register(descriptor("alpha", priority=1), FakeTool())
        catalog.register(descriptor("beta", priority=1), FakeTool())

        replacement = FakeTool("new")
        catalog.register(descriptor("alpha", priority=5, keywords={"fresh"}), replacement)

        assert len(catalog) == 2
        assert [d.name for d in catalog.all()] == ["alpha", "beta"]
        assert catalog.get("alpha").descriptor.priority == 5
        assert catalog.get("alpha").func is replacement

    def test_reregistering_logs_warning(self, catalog: ToolCatalog, caplog: pytest.LogCaptureFixture):
        catalog.register(descriptor("alpha"), FakeTool())
        catalog.register(descriptor("alpha"), FakeTool())

        assert "re-registered" in caplog.text

    def test_by_category_filters_snapshot(self, catalog: ToolCatalog):
        catalog.register(descriptor("calc", ToolCategory.COMPUTATION), FakeTool())
        catalog.register(descriptor("web", ToolCategory.SEARCH), FakeTool())
        catalog.register(descriptor("stats", ToolCategory.COMPUTATION), FakeTool())

        assert [d.name for d in catalog.by_category(ToolCategory.COMPUTATION)] == ["calc", "stats"]
        assert catalog.by_category(ToolCategory.ANALYSIS) == ()

    def test_contains(self, catalog: ToolCatalog):
        catalog.register(descriptor("alpha"), FakeTool())

        assert "alpha" in catalog
        assert "beta" not in catalog

    def test_name_must_be_catalog_safe(self):
        with pytest.raises(ValidationError):
            ToolDescriptor(name="bad:name", description="x", category=ToolCategory.SEARCH)


class TestScoring:
    def test_keyword_hits_weigh_ten_each(self):
        tool = descriptor("t", ToolCategory.ANALYSIS, keywords={"mean", "median"})

        assert tool.score("Mean and MEDIAN please") == 20

    def test_category_cue_adds_fifteen(self):
        tool = descriptor("t", ToolCategory.COMPUTATION, priority=2)

        assert tool.score("what is 12 squared") == 17
        assert tool.score("no cue here") == 2

    def test_knowledge_cue(self):
        tool = descriptor("t", ToolCategory.KNOWLEDGE)

        assert tool.score("Explain entropy") == 15

    def test_analysis_has_no_category_cue(self):
        tool = descriptor("t", ToolCategory.ANALYSIS, priority=1)

        assert tool.score("search and calculate 42") == 1


class TestSelectForQuery:
    def test_excludes_zero_scores(self, catalog: ToolCatalog):
        catalog.register(descriptor("silent", ToolCategory.ANALYSIS), FakeTool())
        catalog.register(descriptor("web", ToolCategory.SEARCH, keywords={"news"}), FakeTool())

        assert catalog.select_for_query("latest news") == ["web"]

    def test_returns_at_most_three_best_first(self, catalog: ToolCatalog):
        for name, priority in [("a", 1), ("b", 4), ("c", 3), ("d", 2)]:
            catalog.register(descriptor(name, ToolCategory.ANALYSIS, priority=priority), FakeTool())

        assert catalog.select_for_query("anything") == ["b", "c", "d"]

    def test_ties_keep_registration_order(self, catalog: ToolCatalog):
        catalog.register(descriptor("first", ToolCategory.ANALYSIS, priority=5), FakeTool())
        catalog.register(descriptor("second", ToolCategory.ANALYSIS, priority=5), FakeTool())

        assert catalog.select_for_query("anything") == ["first", "second"]

    def test_default_catalog_mixed_query(self):
        catalog = build_default_catalog(tavily_api_key=None)

        # calculator: "calculate" keyword + computation cue + 9; statistics: cue + 7
        selected = catalog.select_for_query("Calculate 5 + 3 and tell me about gravity")

        assert selected[:2] == [BuiltinTool.CALCULATOR, BuiltinTool.STATISTICS]
        assert len(selected) == 3
