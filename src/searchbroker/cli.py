"""CLI entry point for SearchBroker."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from searchbroker.config.settings import Settings
    from searchbroker.store.base import Store

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="searchbroker",
        description="SearchBroker — Search backend coordination and channel-type backfill",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"SearchBroker {_get_version()}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the admin HTTP server")
    _add_common_arguments(serve)
    serve.add_argument("--host", type=str, default=None, help="Server bind address (overrides config)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Server port (overrides config)")
    serve.add_argument("--workers", "-w", type=int, default=None, help="Number of worker processes (overrides config)")

    backfill = subparsers.add_parser("backfill", help="Start the enabled engine and run the backfill once")
    _add_common_arguments(backfill)

    args = parser.parse_args(argv)

    settings = _load_settings(args.config)
    if args.log_level:
        settings = settings.model_copy(
            update={"observability": settings.observability.model_copy(update={"log_level": args.log_level})}
        )

    from searchbroker.observability.logging import setup_logging

    setup_logging(settings.observability)

    if args.command == "serve":
        if args.store:
            # Fail here rather than in every worker
            _load_store_factory(args.store)
        _serve(settings, args.store, host=args.host, port=args.port, workers=args.workers)
    else:
        store = _load_store_factory(args.store)() if args.store else None
        sys.exit(asyncio.run(_backfill(settings, store)))


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        help="Primary store factory as 'module:callable' (default: empty in-memory store)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )


def _load_settings(config: str | None) -> Settings:
    from searchbroker.api.app import load_settings

    if config and not Path(config).exists():
        print(f"Error: Config file not found: {config}", file=sys.stderr)
        sys.exit(1)
    return load_settings(config)


def _load_store_factory(target: str) -> Callable[[], Store]:
    """Resolve the ``--store`` factory, exiting with an error message if it cannot be loaded."""
    from searchbroker.api.app import load_store_factory

    try:
        return load_store_factory(target)
    except ValueError as e:
        print(f"Error: --store {e}", file=sys.stderr)
        sys.exit(1)
    except (ImportError, AttributeError) as e:
        print(f"Error: cannot load store factory {target!r}: {e}", file=sys.stderr)
        sys.exit(1)


def _serve(
    settings: Settings,
    store_target: str | None,
    host: str | None = None,
    port: int | None = None,
    workers: int | None = None,
) -> None:
    """Run uvicorn on the app factory.

    Every worker process builds its own app, so the effective settings and
    the store factory reach it through the environment.
    """
    import uvicorn

    from searchbroker.api.app import SETTINGS_ENV_VAR, STORE_ENV_VAR

    overrides = {"host": host, "port": port, "workers": workers}
    server = settings.server.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    settings = settings.model_copy(update={"server": server})

    os.environ[SETTINGS_ENV_VAR] = settings.model_dump_json()
    if store_target:
        os.environ[STORE_ENV_VAR] = store_target
    else:
        os.environ.pop(STORE_ENV_VAR, None)

    uvicorn.run(
        "searchbroker.api.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers,
        log_level=settings.observability.log_level.lower(),
    )


async def _backfill(settings: Settings, store: Store | None) -> int:
    """Start engines, run the backfill once, stop engines. Returns the exit code."""
    from searchbroker.api.app import build_platform_service
    from searchbroker.core.backfill import BackfillState

    # The explicit run below replaces the one normally chained to engine start.
    backfill_settings = settings.backfill.model_copy(update={"run_on_startup": False})
    settings = settings.model_copy(update={"backfill": backfill_settings})

    service = build_platform_service(settings, store)
    service.start_search_engine()
    await service.wait_for_background_tasks()
    try:
        state = await service.run_backfill()
    finally:
        await service.shutdown()

    if state is BackfillState.NOT_STARTED:
        print("No search engine is active; nothing to backfill.", file=sys.stderr)
        return 1
    print(f"Backfill {state.value}.")
    return 0 if state is BackfillState.COMPLETED else 1


def _get_version() -> str:
    """Get the package version."""
    try:
        from searchbroker import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    main()
