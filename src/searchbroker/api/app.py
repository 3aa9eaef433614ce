"""FastAPI application factory and lifecycle management."""

from __future__ import annotations

import importlib
import logging
import os
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from searchbroker import __version__
from searchbroker.api.deps import set_service
from searchbroker.api.v1.router import router as v1_router
from searchbroker.config.settings import Settings
from searchbroker.core.platform import PlatformService
from searchbroker.engines.base.broker import EngineKind
from searchbroker.observability.logging import setup_logging
from searchbroker.store.base import Store

logger = logging.getLogger(__name__)

# Hand-off from `searchbroker serve` to the app factory in each uvicorn worker
SETTINGS_ENV_VAR = "SEARCHBROKER_SETTINGS_JSON"
STORE_ENV_VAR = "SEARCHBROKER_STORE_FACTORY"


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings.

    Sources, first match wins: ``config_path``, the snapshot exported by
    ``searchbroker serve``, ``searchbroker-config.yaml`` in the working
    directory, then the environment.
    """
    if config_path is not None:
        return Settings.from_yaml(config_path)
    exported = os.environ.get(SETTINGS_ENV_VAR)
    if exported:
        return Settings.model_validate_json(exported)
    yaml_path = Path("searchbroker-config.yaml")
    if yaml_path.exists():
        logger.info("Loading configuration from %s", yaml_path)
        return Settings.from_yaml(yaml_path)
    return Settings()


def load_store_factory(target: str) -> Callable[[], Store]:
    """Resolve a ``module:callable`` store factory.

    Raises:
        ValueError: If ``target`` is not of the form ``module:callable``.
        ImportError: If the module cannot be imported.
        AttributeError: If the module has no such callable.
    """
    module_path, _, attr = target.partition(":")
    if not module_path or not attr:
        raise ValueError(f"store factory must look like 'module:callable', got {target!r}")
    return getattr(importlib.import_module(module_path), attr)


def create_app(settings: Settings | None = None, store: Store | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from YAML or environment.
        store: Primary store. If None, the factory named by
            ``SEARCHBROKER_STORE_FACTORY`` builds it, or an empty in-memory
            store is used.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = load_settings()
    if store is None and os.environ.get(STORE_ENV_VAR):
        store = load_store_factory(os.environ[STORE_ENV_VAR])()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle (startup/shutdown)."""
        setup_logging(settings.observability)
        logger.info("Starting SearchBroker v%s", __version__)

        service = build_platform_service(settings, store)
        service.start_search_engine()
        set_service(service)
        app.state.settings = settings
        app.state.service = service

        logger.info("SearchBroker is ready; search served by %s", service.active_engine())
        yield

        logger.info("Shutting down SearchBroker...")
        await service.shutdown()
        set_service(None)
        logger.info("SearchBroker shutdown complete")

    app = FastAPI(
        title="SearchBroker",
        description="Search backend coordination and post channel-type backfill.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router, prefix="/v1")

    return app


# ── Engine registration ──

# Maps engine kinds to (module_path, class_name) for lazy import
_ENGINE_MAP: dict[EngineKind, tuple[str, str]] = {
    EngineKind.ELASTICSEARCH: ("searchbroker.engines.elasticsearch.engine", "ElasticsearchEngine"),
    EngineKind.TYPESENSE: ("searchbroker.engines.typesense.engine", "TypesenseEngine"),
}


def build_platform_service(settings: Settings, store: Store | None = None) -> PlatformService:
    """Create the platform service and register the built-in engines.

    Every built-in engine is registered whether or not it is enabled, so
    that enabling one later through a configuration update can start it.
    """
    if store is None:
        from searchbroker.store.memory import MemoryStore

        store = MemoryStore()

    service = PlatformService(settings, store)
    for kind, (module_path, class_name) in _ENGINE_MAP.items():
        try:
            module = importlib.import_module(module_path)
            engine_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            logger.warning("Failed to import %s engine: %s", kind.value, e)
            continue
        service.broker.register_engine(kind, engine_class(settings))
    return service
