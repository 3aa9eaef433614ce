"""In-memory store — a dict-backed ``Store`` for local runs and tests.

Channels are kept in insertion order so that paging is stable.
"""

from __future__ import annotations

import asyncio
import logging

from searchbroker.models.channel import Channel, ChannelSearchOptions
from searchbroker.models.system import System
from searchbroker.store.base import SystemNotFoundError

logger = logging.getLogger(__name__)


class MemoryChannelStore:
    """Channel listing over an ordered dict."""

    def __init__(self, channels: list[Channel] | None = None) -> None:
        self._channels: dict[str, Channel] = {}
        self._lock = asyncio.Lock()
        for channel in channels or []:
            self._channels[channel.id] = channel

    async def save(self, channel: Channel) -> None:
        async with self._lock:
            self._channels[channel.id] = channel

    async def get_all_channels(self, offset: int, limit: int, options: ChannelSearchOptions) -> list[Channel]:
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must be non-negative")
        async with self._lock:
            channels = list(self._channels.values())
        if not options.include_deleted:
            channels = [c for c in channels if c.delete_at == 0]
        return channels[offset : offset + limit]


class MemorySystemStore:
    """System table over a plain dict."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get_by_name(self, name: str) -> System:
        async with self._lock:
            if name not in self._records:
                raise SystemNotFoundError(f"System record '{name}' not found.")
            return System(name=name, value=self._records[name])

    async def save_or_update(self, system: System) -> None:
        async with self._lock:
            self._records[system.name] = system.value
        logger.debug("Saved system record %s=%s", system.name, system.value)


class MemoryStore:
    """Bundles the in-memory channel and system stores."""

    def __init__(self, channels: list[Channel] | None = None) -> None:
        self._channel_store = MemoryChannelStore(channels)
        self._system_store = MemorySystemStore()

    def channel(self) -> MemoryChannelStore:
        return self._channel_store

    def system(self) -> MemorySystemStore:
        return self._system_store
