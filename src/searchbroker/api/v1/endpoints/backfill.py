"""Backfill endpoints — Inspect and trigger the post channel-type backfill."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from searchbroker.api.deps import get_service
from searchbroker.core.backfill import BackfillState
from searchbroker.core.platform import PlatformService

router = APIRouter()


class BackfillStatusResponse(BaseModel):
    """State of the most recent backfill run in this process."""

    state: BackfillState = Field(description="not_started, running, completed or aborted")
    running: bool = Field(description="Whether a run is in flight")
    last_error: str | None = Field(default=None, description="Why the last run aborted")


@router.get(
    "/backfill",
    response_model=BackfillStatusResponse,
    summary="Backfill Status",
)
async def backfill_status(
    service: PlatformService = Depends(get_service),
) -> BackfillStatusResponse:
    return BackfillStatusResponse(
        state=service.backfill.state,
        running=service.backfill.running,
        last_error=service.backfill.last_error,
    )


@router.post(
    "/backfill",
    response_model=BackfillStatusResponse,
    status_code=202,
    summary="Run Backfill",
    description=(
        "Schedule the post channel-type backfill against the active engine. "
        "A run that already completed returns immediately without touching the engine."
    ),
    responses={409: {"description": "A run is in flight or no engine is active"}},
)
async def trigger_backfill(
    background_tasks: BackgroundTasks,
    service: PlatformService = Depends(get_service),
) -> BackfillStatusResponse:
    if service.backfill.running:
        raise HTTPException(status_code=409, detail="A backfill is already running.")
    if not service.broker.get_active_engines():
        raise HTTPException(status_code=409, detail="No search engine is active.")

    background_tasks.add_task(service.run_backfill)
    return BackfillStatusResponse(
        state=service.backfill.state,
        running=service.backfill.running,
        last_error=service.backfill.last_error,
    )
