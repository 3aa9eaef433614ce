"""Platform service — Starts and stops search engines and runs the backfill.

The service owns the broker and is the only component that drives engine
lifecycles. Engine starts never block the caller: they are scheduled as
background tasks, and a failed start is visible only through the engine's
``is_active()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from searchbroker.core.backfill import (
    BackfillAbortedError,
    BackfillInProgressError,
    BackfillMigration,
    BackfillState,
)
from searchbroker.engines.base.broker import Broker

if TYPE_CHECKING:
    from searchbroker.config.settings import Settings
    from searchbroker.engines.base.engine import SearchEngine
    from searchbroker.store.base import Store

logger = logging.getLogger(__name__)


class PlatformService:
    """Search side of the application lifecycle.

    Attributes:
        broker: Engine registry and active-engine policy.
        backfill: The post channel-type backfill migration.
    """

    def __init__(self, settings: Settings, store: Store, broker: Broker | None = None) -> None:
        self._settings = settings
        self._store = store
        self.broker = broker if broker is not None else Broker(settings)
        self.backfill = BackfillMigration(store, page_size=settings.backfill.page_size)
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def settings(self) -> Settings:
        return self._settings

    def active_engine(self) -> str:
        return self.broker.active_engine()

    # ── Engine lifecycle ─────────────────────────────────────────────────

    def start_search_engine(self) -> None:
        """Start every registered engine that is enabled, in the background.

        Each engine receives the current configuration before its start is
        scheduled. Empty slots and disabled engines are skipped.
        """
        for kind, engine in self.broker.registered_engines:
            if not engine.is_enabled():
                logger.info("Search engine %s is disabled, not starting", kind.value)
                continue
            engine.update_config(self._settings)
            self._spawn(self._start_engine(engine), name=f"start-{kind.value}")

    async def stop_search_engine(self) -> None:
        """Stop every registered engine that is active. Errors are logged."""
        for kind, engine in self.broker.registered_engines:
            if not engine.is_active():
                continue
            await self._stop_engine(engine)
            logger.debug("Stopped %s engine", kind.value)

    def update_config(self, settings: Settings) -> None:
        """Apply a configuration change.

        The snapshot goes to the broker (and from there to every engine).
        An engine that became enabled is started in the background. A
        disabled engine gets a background ``stop()``, which is a no-op when it
        was never started.
        """
        self._settings = settings
        self.broker.update_config(settings)

        for kind, engine in self.broker.registered_engines:
            enabled = engine.is_enabled()
            if enabled and not engine.is_active():
                self._spawn(self._start_engine(engine), name=f"start-{kind.value}")
            elif not enabled:
                self._spawn(self._stop_engine(engine), name=f"stop-{kind.value}")

    # ── Backfill ─────────────────────────────────────────────────────────

    async def run_backfill(self) -> BackfillState:
        """Run the channel-type backfill against the active engine.

        Returns ``NOT_STARTED`` when no engine is active and ``ABORTED``
        when the run failed; a failed run is retried on the next call. If a
        run is already in flight its current state is returned.
        """
        engines = self.broker.get_active_engines()
        if not engines:
            logger.info("No active search engine, skipping post channel_type backfill")
            return BackfillState.NOT_STARTED

        try:
            return await self.backfill.run(engines[0], timeout=self._settings.backfill.timeout_seconds)
        except BackfillAbortedError:
            logger.warning("Post channel_type backfill did not finish; it will run again on next start")
            return BackfillState.ABORTED
        except BackfillInProgressError:
            logger.info("Post channel_type backfill already running, not starting another")
            return self.backfill.state

    # ── Shutdown ─────────────────────────────────────────────────────────

    async def wait_for_background_tasks(self) -> None:
        """Wait until every scheduled start/stop task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel pending background work, then stop active engines."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.stop_search_engine()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _start_engine(self, engine: SearchEngine) -> None:
        try:
            await engine.start()
        except Exception:
            logger.error("Failed to start search engine %s", engine.name, exc_info=True)
            return

        if not engine.is_active():
            return
        logger.info("Search engine %s is active", engine.name)

        if not self._settings.backfill.run_on_startup:
            return
        active = self.broker.get_active_engines()
        if active and active[0] is engine:
            await self.run_backfill()

    @staticmethod
    async def _stop_engine(engine: SearchEngine) -> None:
        try:
            await engine.stop()
        except Exception:
            logger.error("Failed to stop search engine %s", engine.name, exc_info=True)

