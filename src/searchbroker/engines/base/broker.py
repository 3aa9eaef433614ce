"""Search engine broker — Which backend serves search, and config fan-out.

The broker holds one slot per ``EngineKind``. It never creates or closes an
engine; whoever registers an engine owns it. All methods are pure
coordination and perform no I/O.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING

from searchbroker.engines.base.engine import SearchEngine

if TYPE_CHECKING:
    from searchbroker.config.settings import Settings

logger = logging.getLogger(__name__)

DATABASE_ENGINE = "database"
NO_ENGINE = "none"


class EngineKind(str, Enum):
    """Supported backend families, in precedence order."""

    ELASTICSEARCH = "elasticsearch"
    TYPESENSE = "typesense"


class Broker:
    """Registry of search engines and the single source of truth for the active one.

    Example:
        >>> broker = Broker(settings)
        >>> broker.register_engine(EngineKind.TYPESENSE, TypesenseEngine(settings))
        >>> broker.active_engine()
        'database'
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self._engines: dict[EngineKind, SearchEngine] = {}
        self._lock = threading.Lock()

    @property
    def settings(self) -> Settings | None:
        """The last configuration snapshot received."""
        return self._settings

    def register_engine(self, kind: EngineKind, engine: SearchEngine) -> None:
        """Put ``engine`` in the slot for ``kind``, replacing any previous one."""
        with self._lock:
            if kind in self._engines:
                logger.warning("Overwriting existing %s engine registration", kind.value)
            self._engines[kind] = engine
        logger.info("Registered %s engine: %s", kind.value, engine.name)

    def unregister_engine(self, kind: EngineKind) -> None:
        """Empty the slot for ``kind``. A no-op when it is already empty."""
        with self._lock:
            self._engines.pop(kind, None)

    def get_engine(self, kind: EngineKind) -> SearchEngine | None:
        """Return the engine registered for ``kind``, if any."""
        return self._engines.get(kind)

    @property
    def registered_engines(self) -> list[tuple[EngineKind, SearchEngine]]:
        """Registered ``(kind, engine)`` pairs in precedence order."""
        engines = dict(self._engines)
        return [(kind, engines[kind]) for kind in EngineKind if kind in engines]

    def update_config(self, settings: Settings) -> None:
        """Store ``settings`` and hand it to every registered engine.

        Engines are updated in precedence order; empty slots are skipped.
        """
        with self._lock:
            self._settings = settings
            engines = [self._engines[kind] for kind in EngineKind if kind in self._engines]
        for engine in engines:
            engine.update_config(settings)

    def get_active_engines(self) -> list[SearchEngine]:
        """Every registered engine that is currently active, in precedence order."""
        return [engine for _, engine in self.registered_engines if engine.is_active()]

    def active_engine(self) -> str:
        """Name of the backend that should serve search right now.

        Returns the first active engine's name. With no active engine, the
        primary store serves search (``"database"``) unless database search
        is disabled, in which case search is off (``"none"``).
        """
        active = self.get_active_engines()
        if active:
            if len(active) > 1:
                logger.warning(
                    "Multiple search engines are active (%s); using %s",
                    ", ".join(e.name for e in active),
                    active[0].name,
                )
            return active[0].name

        settings = self._settings
        if settings is not None and settings.sql.disable_database_search:
            return NO_ENGINE
        return DATABASE_ENGINE
