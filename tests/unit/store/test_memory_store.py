"""Tests for the in-memory store."""

from __future__ import annotations

import pytest

from searchbroker.models.channel import Channel, ChannelSearchOptions
from searchbroker.models.system import System
from searchbroker.store.base import ChannelStore, Store, SystemNotFoundError, SystemStore
from searchbroker.store.memory import MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(
        [
            Channel(id="a", type="O", name="town-square"),
            Channel(id="b", type="P", name="secret"),
            Channel(id="c", type="D", delete_at=1700000000000),
            Channel(id="d", type="O", name="off-topic"),
        ]
    )


class TestMemoryChannelStore:
    async def test_paging_in_insertion_order(self, store: MemoryStore) -> None:
        first = await store.channel().get_all_channels(0, 2, ChannelSearchOptions())
        second = await store.channel().get_all_channels(2, 2, ChannelSearchOptions())
        assert [c.id for c in first] == ["a", "b"]
        assert [c.id for c in second] == ["d"]

    async def test_past_end_is_empty(self, store: MemoryStore) -> None:
        assert await store.channel().get_all_channels(10, 5, ChannelSearchOptions()) == []

    async def test_include_deleted(self, store: MemoryStore) -> None:
        channels = await store.channel().get_all_channels(0, 10, ChannelSearchOptions(include_deleted=True))
        assert [c.id for c in channels] == ["a", "b", "c", "d"]

    async def test_save_replaces_by_id(self, store: MemoryStore) -> None:
        await store.channel().save(Channel(id="a", type="P"))
        channels = await store.channel().get_all_channels(0, 10, ChannelSearchOptions())
        assert channels[0].type == "P"
        assert len(channels) == 3

    async def test_negative_offset_rejected(self, store: MemoryStore) -> None:
        with pytest.raises(ValueError):
            await store.channel().get_all_channels(-1, 10, ChannelSearchOptions())


class TestMemorySystemStore:
    async def test_missing_record(self, store: MemoryStore) -> None:
        with pytest.raises(SystemNotFoundError):
            await store.system().get_by_name("nope")

    async def test_save_then_read(self, store: MemoryStore) -> None:
        await store.system().save_or_update(System(name="k", value="v1"))
        await store.system().save_or_update(System(name="k", value="v2"))
        record = await store.system().get_by_name("k")
        assert record == System(name="k", value="v2")


class TestProtocols:
    def test_memory_store_satisfies_protocols(self, store: MemoryStore) -> None:
        assert isinstance(store, Store)
        assert isinstance(store.channel(), ChannelStore)
        assert isinstance(store.system(), SystemStore)
