"""API dependency wiring - thin DI glue over the service factory."""

from functools import lru_cache

from ..config import get_settings
from ..service import ResearchService, create_research_service


@lru_cache(maxsize=1)
def get_research_service() -> ResearchService:
    """
    Create the research service (cached singleton).

    Service factory handles all construction logic. Tests replace this
    dependency through app.dependency_overrides.
    """
    return create_research_service(get_settings())
