"""Typesense engine — Search backend connector for Typesense.

Talks to Typesense through its `REST API`_ with ``httpx``; no Typesense
client library is needed.

.. _REST API: https://typesense.org/docs/latest/api/

Usage::

    engine = TypesenseEngine(settings)
    await engine.start()
    await engine.backfill_posts_channel_type(["ch1", "ch2"], "O")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import httpx

from searchbroker.engines.base.engine import SearchEngine
from searchbroker.engines.base.exceptions import (
    BulkUpdateError,
    EngineConfigurationError,
    EngineConnectionError,
    EngineNotStartedError,
)
from searchbroker.engines.common import (
    INDEX_BASE_CHANNELS,
    INDEX_BASE_FILES,
    INDEX_BASE_POSTS,
    INDEX_BASE_USERS,
    INDEX_BASES,
)

if TYPE_CHECKING:
    from searchbroker.config.settings import SearchBackendSettings, Settings

logger = logging.getLogger(__name__)

# Typesense caps the length of filter_by expressions.
_FILTER_BATCH_SIZE = 250

_COLLECTION_FIELDS: dict[str, list[dict[str, Any]]] = {
    INDEX_BASE_POSTS: [
        {"name": "team_id", "type": "string", "facet": True},
        {"name": "channel_id", "type": "string", "facet": True},
        {"name": "channel_type", "type": "string", "facet": True, "optional": True},
        {"name": "user_id", "type": "string", "facet": True},
        {"name": "message", "type": "string"},
        {"name": "create_at", "type": "int64"},
    ],
    INDEX_BASE_CHANNELS: [
        {"name": "team_id", "type": "string", "facet": True},
        {"name": "type", "type": "string", "facet": True},
        {"name": "name", "type": "string"},
        {"name": "display_name", "type": "string"},
    ],
    INDEX_BASE_USERS: [
        {"name": "username", "type": "string"},
        {"name": "team_ids", "type": "string[]", "facet": True},
        {"name": "channel_ids", "type": "string[]", "facet": True},
    ],
    INDEX_BASE_FILES: [
        {"name": "channel_id", "type": "string", "facet": True},
        {"name": "name", "type": "string"},
        {"name": "create_at", "type": "int64"},
    ],
}


class TypesenseEngine(SearchEngine):
    """Search engine backed by Typesense.

    Configuration is read from ``settings.typesense`` on every call, so a
    snapshot pushed through ``update_config`` takes effect on the next
    ``start()``.

    Args:
        settings: Initial configuration snapshot.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "typesense"

    @property
    def _config(self) -> SearchBackendSettings:
        return self._settings.typesense

    def is_enabled(self) -> bool:
        return self._config.enable_indexing

    def is_active(self) -> bool:
        return self.is_enabled() and self._client is not None

    def update_config(self, settings: Settings) -> None:
        self._settings = settings

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Connect, check ``/health`` and create missing collections."""
        if not self.is_enabled():
            return

        async with self._lock:
            if self._client is not None:
                return

            client = self._build_client(self._config)
            try:
                await self._check_health(client)
                await self._create_collections(client)
            except BaseException:
                await client.aclose()
                raise

            self._client = client
            logger.info("Typesense engine started at %s", self._config.connection_url)

    async def stop(self) -> None:
        async with self._lock:
            if self._client is None:
                return
            client, self._client = self._client, None
            await client.aclose()
            logger.info("Typesense engine stopped")

    # ── Backfill ─────────────────────────────────────────────────────────

    async def backfill_posts_channel_type(self, channel_ids: Sequence[str], channel_type: str) -> None:
        """Set ``channel_type`` on indexed posts with an update-by-filter request."""
        client = self._client
        if client is None:
            raise EngineNotStartedError("Typesense engine is not started.")

        collection = self._collection_name(INDEX_BASE_POSTS)
        for i in range(0, len(channel_ids), _FILTER_BATCH_SIZE):
            batch = channel_ids[i : i + _FILTER_BATCH_SIZE]
            try:
                resp = await client.patch(
                    f"/collections/{collection}/documents",
                    params={"filter_by": _channel_filter(batch)},
                    json={"channel_type": channel_type},
                )
                resp.raise_for_status()
                num_updated = resp.json().get("num_updated", 0)
            except (httpx.HTTPError, ValueError) as e:
                raise BulkUpdateError(f"Typesense channel_type backfill failed: {e}") from e

            logger.debug("Typesense updated %s posts to channel_type=%s", num_updated, channel_type)

    # ── Admin ────────────────────────────────────────────────────────────

    async def test_config(self, settings: Settings) -> None:
        client = self._build_client(settings.typesense)
        try:
            await self._check_health(client)
        finally:
            await client.aclose()

    async def purge_indexes(self, indexes: Sequence[str] | None = None) -> None:
        """Delete collections; with no list, delete and recreate all of them."""
        client = self._client
        if client is None:
            raise EngineNotStartedError("Typesense engine is not started.")

        names = list(indexes) if indexes is not None else [self._collection_name(b) for b in INDEX_BASES]
        for name in names:
            try:
                resp = await client.delete(f"/collections/{name}")
                if resp.status_code != 404:
                    resp.raise_for_status()
            except httpx.HTTPError:
                logger.warning("Error deleting Typesense collection %s", name, exc_info=True)

        if indexes is None:
            await self._create_collections(client)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _collection_name(self, base: str) -> str:
        return f"{self._config.index_prefix}{base}"

    @staticmethod
    def _build_client(config: SearchBackendSettings) -> httpx.AsyncClient:
        if not config.connection_url:
            raise EngineConfigurationError("Typesense connection_url is not set.")

        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["X-TYPESENSE-API-KEY"] = config.api_key

        return httpx.AsyncClient(
            base_url=config.connection_url,
            timeout=httpx.Timeout(config.request_timeout_seconds),
            headers=headers,
        )

    @staticmethod
    async def _check_health(client: httpx.AsyncClient) -> None:
        try:
            resp = await client.get("/health")
            resp.raise_for_status()
            health = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EngineConnectionError(f"Failed to connect to Typesense: {e}") from e
        if not health.get("ok"):
            raise EngineConnectionError("Typesense reported itself unhealthy.")

    async def _create_collections(self, client: httpx.AsyncClient) -> None:
        for base, fields in _COLLECTION_FIELDS.items():
            name = self._collection_name(base)
            try:
                resp = await client.get(f"/collections/{name}")
                if resp.status_code == 404:
                    resp = await client.post("/collections", json={"name": name, "fields": fields})
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise EngineConnectionError(f"Failed to create Typesense collection '{name}': {e}") from e


def _channel_filter(channel_ids: Sequence[str]) -> str:
    """``channel_id:=[`a`,`b`]`` — backticks keep ids with commas intact."""
    quoted = ",".join(f"`{cid}`" for cid in channel_ids)
    return f"channel_id:=[{quoted}]"
