"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from searchbroker.config.settings import Settings
from searchbroker.engines.base.engine import SearchEngine
from searchbroker.models.channel import Channel, ChannelType
from searchbroker.models.system import System
from searchbroker.store.base import SystemNotFoundError


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        observability={"log_level": "debug", "log_format": "console"},
    )


@pytest.fixture
def make_engine() -> Callable[..., MagicMock]:
    """Factory for SearchEngine doubles with fixed enabled/active answers."""

    def _make(name: str = "typesense", enabled: bool = True, active: bool = False) -> MagicMock:
        engine = MagicMock(spec=SearchEngine)
        engine.name = name
        engine.is_enabled.return_value = enabled
        engine.is_active.return_value = active
        engine.start = AsyncMock(return_value=None)
        engine.stop = AsyncMock(return_value=None)
        engine.backfill_posts_channel_type = AsyncMock(return_value=None)
        engine.test_config = AsyncMock(return_value=None)
        engine.purge_indexes = AsyncMock(return_value=None)
        return engine

    return _make


@pytest.fixture
def mock_store() -> MagicMock:
    """Store double: no completion marker yet, empty channel listing."""
    system_store = MagicMock()
    system_store.get_by_name = AsyncMock(side_effect=SystemNotFoundError("not found"))
    system_store.save_or_update = AsyncMock(return_value=None)

    channel_store = MagicMock()
    channel_store.get_all_channels = AsyncMock(return_value=[])

    store = MagicMock()
    store.system.return_value = system_store
    store.channel.return_value = channel_store
    return store


@pytest.fixture
def completed_marker() -> System:
    return System(name="post channel-type backfill complete", value="true")


@pytest.fixture
def mixed_channels() -> list[Channel]:
    """One page with open and private channels, as the real store returns them."""
    return [
        Channel(id="ch1", type=ChannelType.OPEN),
        Channel(id="ch2", type=ChannelType.OPEN),
        Channel(id="ch3", type=ChannelType.PRIVATE),
    ]
