"""Primary store protocols — the small surface the backfill needs.

The primary store itself (schema, query execution, connection pooling) lives
outside this package. Anything that satisfies these protocols can be plugged
into ``PlatformService``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from searchbroker.models.channel import Channel, ChannelSearchOptions
from searchbroker.models.system import System


class StoreError(Exception):
    """Base exception for primary store failures."""


class SystemNotFoundError(StoreError):
    """Raised when a system record does not exist."""


@runtime_checkable
class ChannelStore(Protocol):
    """Read access to channels."""

    async def get_all_channels(self, offset: int, limit: int, options: ChannelSearchOptions) -> list[Channel]:
        """Return up to ``limit`` channels starting at ``offset``.

        Channels of every type are returned.
        """
        ...


@runtime_checkable
class SystemStore(Protocol):
    """Generic key/value system table."""

    async def get_by_name(self, name: str) -> System:
        """Return the record named ``name``; raises ``SystemNotFoundError`` if absent."""
        ...

    async def save_or_update(self, system: System) -> None:
        """Insert or overwrite a record."""
        ...


@runtime_checkable
class Store(Protocol):
    """Aggregate accessor handed to ``PlatformService``."""

    def channel(self) -> ChannelStore: ...

    def system(self) -> SystemStore: ...
