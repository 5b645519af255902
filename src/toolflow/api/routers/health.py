"""Health check router

Provides health check endpoints for monitoring and service discovery.

Endpoints:
- GET /health: Service health status, version and registered tool count
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...api.contracts import HealthResponse
from ...config import settings
from ...service import ResearchService
from ..deps import get_research_service

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(service: Annotated[ResearchService, Depends(get_research_service)]) -> HealthResponse:
    """API health check"""
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        tools=len(service.catalog),
    )
