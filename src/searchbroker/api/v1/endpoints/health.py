"""Health check endpoint — Service liveness and the engine serving search."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from searchbroker import __version__
from searchbroker.api.deps import get_service
from searchbroker.core.platform import PlatformService

router = APIRouter()


class HealthResponse(BaseModel):
    """System health check response."""

    status: str = Field(description="Health status (e.g. 'healthy')")
    version: str = Field(description="SearchBroker version")
    service: str = Field(description="Service name ('searchbroker')")
    active_engine: str = Field(description="Engine serving search: an engine name, 'database' or 'none'")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="System Health Check",
    description="Returns service health, version, and which backend currently serves search.",
)
async def health_check(
    service: PlatformService = Depends(get_service),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        service="searchbroker",
        active_engine=service.active_engine(),
    )
