"""Search engine admin endpoints — Status, connection test, and index purge."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from searchbroker.api.deps import get_service
from searchbroker.config.settings import SearchBackendSettings
from searchbroker.core.platform import PlatformService
from searchbroker.engines.base.broker import EngineKind
from searchbroker.engines.base.engine import SearchEngine
from searchbroker.engines.base.exceptions import EngineNotStartedError, SearchEngineError

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Response models ──────────────────────────────────────────────────────


class EngineStatus(BaseModel):
    """State of one registered engine."""

    kind: EngineKind = Field(description="Backend kind the engine is registered under")
    name: str = Field(description="Engine name")
    enabled: bool = Field(description="Turned on in configuration")
    active: bool = Field(description="Enabled and started")


class SearchEnginesResponse(BaseModel):
    """Registered engines in precedence order."""

    active_engine: str = Field(description="Engine serving search: an engine name, 'database' or 'none'")
    engines: list[EngineStatus] = Field(default_factory=list)


class StatusResponse(BaseModel):
    status: str = Field(default="OK")


# ── Helpers ──────────────────────────────────────────────────────────────


def _registered_engine(service: PlatformService, kind: EngineKind) -> SearchEngine:
    engine = service.broker.get_engine(kind)
    if engine is None:
        raise HTTPException(status_code=400, detail=f"No {kind.value} engine is registered.")
    return engine


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get(
    "/search_engines",
    response_model=SearchEnginesResponse,
    summary="List Search Engines",
)
async def list_search_engines(
    service: PlatformService = Depends(get_service),
) -> SearchEnginesResponse:
    return SearchEnginesResponse(
        active_engine=service.active_engine(),
        engines=[
            EngineStatus(kind=kind, name=engine.name, enabled=engine.is_enabled(), active=engine.is_active())
            for kind, engine in service.broker.registered_engines
        ],
    )


@router.post(
    "/search_engines/{kind}/test",
    response_model=StatusResponse,
    summary="Test Engine Connection",
    description=(
        "Check that the engine can reach its backend. The request body may carry "
        "candidate backend settings to test before saving them; without a body the "
        "live configuration is used."
    ),
    responses={
        400: {"description": "No engine is registered for this kind"},
        500: {"description": "The backend could not be reached"},
    },
)
async def test_search_engine(
    kind: EngineKind,
    config: SearchBackendSettings | None = None,
    service: PlatformService = Depends(get_service),
) -> StatusResponse:
    engine = _registered_engine(service, kind)

    settings = service.settings
    if config is not None:
        # Fields left out of the body keep their live values.
        current = getattr(settings, kind.value)
        candidate = current.model_copy(update=config.model_dump(exclude_unset=True))
        settings = settings.model_copy(update={kind.value: candidate})

    try:
        await engine.test_config(settings)
    except SearchEngineError as e:
        logger.warning("Connection test for %s failed: %s", kind.value, e)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return StatusResponse()


@router.post(
    "/search_engines/{kind}/purge_indexes",
    response_model=StatusResponse,
    summary="Purge Engine Indexes",
    responses={
        400: {"description": "No engine is registered for this kind"},
        409: {"description": "The engine is not started"},
    },
)
async def purge_search_engine_indexes(
    kind: EngineKind,
    index: list[str] | None = Query(default=None, description="Indexes to purge; all when omitted"),
    service: PlatformService = Depends(get_service),
) -> StatusResponse:
    engine = _registered_engine(service, kind)
    try:
        await engine.purge_indexes(index)
    except EngineNotStartedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except SearchEngineError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    logger.info("Purged %s indexes: %s", kind.value, index or "all")
    return StatusResponse()
