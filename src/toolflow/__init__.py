"""toolflow package exports."""

from .config import Settings, settings
from .domain import ExecutionEngine, PipelineOrchestrator, ProgressBus, QueryAnalyzer, ToolCatalog
from .service import ResearchService, create_research_service

__all__ = [
    "ExecutionEngine",
    "PipelineOrchestrator",
    "ProgressBus",
    "QueryAnalyzer",
    "ResearchService",
    "Settings",
    "ToolCatalog",
    "create_research_service",
    "settings",
]
