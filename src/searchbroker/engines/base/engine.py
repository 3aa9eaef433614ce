"""Base search engine — Capability contract every backend must satisfy.

The broker, the platform service and the backfill migration only ever talk
to a backend through this interface. An engine is responsible for:
  1. Reporting whether it is enabled (config only) and active (enabled and started)
  2. Accepting configuration snapshots at any time
  3. Starting and stopping its own connection state
  4. Bulk-patching derived fields on already-indexed posts
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from searchbroker.config.settings import Settings


class SearchEngine(ABC):
    """Abstract base class for search engine backends.

    Engines own their client and must guard it themselves: ``start``,
    ``stop`` and ``update_config`` may be invoked from different tasks.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable engine name (e.g., 'elasticsearch', 'typesense')."""

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether the operator turned this engine on. Reads config only."""

    @abstractmethod
    def is_active(self) -> bool:
        """Whether the engine is enabled and currently started."""

    @abstractmethod
    def update_config(self, settings: Settings) -> None:
        """Apply a new configuration snapshot.

        Must not perform network I/O. Problems with the new configuration
        surface through ``start()`` or ``is_active()``.
        """

    @abstractmethod
    async def start(self) -> None:
        """Connect to the backend.

        A no-op when the engine is disabled or already started.

        Raises:
            EngineConnectionError: If the backend cannot be reached.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Release the client. Safe to call on an engine that never started."""

    @abstractmethod
    async def backfill_posts_channel_type(self, channel_ids: Sequence[str], channel_type: str) -> None:
        """Tag every indexed post of ``channel_ids`` with ``channel_type``.

        Either the whole batch is applied or an exception is raised.

        Raises:
            EngineNotStartedError: If the engine is not started.
            BulkUpdateError: If any document failed to update.
        """

    @abstractmethod
    async def test_config(self, settings: Settings) -> None:
        """Check connectivity using ``settings`` without touching the live client.

        Raises:
            EngineConnectionError: If the backend cannot be reached.
        """

    @abstractmethod
    async def purge_indexes(self, indexes: Sequence[str] | None = None) -> None:
        """Drop ``indexes``, or every index this engine owns when None.

        Raises:
            EngineNotStartedError: If the engine is not started.
        """
