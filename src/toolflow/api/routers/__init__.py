"""API router exports"""

from .health import router as health_router
from .research import router as research_router

__all__ = ["health_router", "research_router"]
