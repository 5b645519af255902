from .research import ResearchService, create_research_service

__all__ = ["ResearchService", "create_research_service"]
