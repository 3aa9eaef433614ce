"""API v1 Router — Health, search engine admin, and backfill endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from searchbroker.api.v1.endpoints.backfill import router as backfill_router
from searchbroker.api.v1.endpoints.health import router as health_router
from searchbroker.api.v1.endpoints.search_engines import router as search_engines_router

router = APIRouter(tags=["v1"])
router.include_router(health_router)
router.include_router(search_engines_router)
router.include_router(backfill_router)
