"""Elasticsearch engine — Search backend connector for Elasticsearch (v8+).

Uses the Elasticsearch REST API directly through ``httpx``. The channel-type
backfill submits one ``_update_by_query`` per partition as a background task
(``wait_for_completion=false``) and polls the tasks API until it finishes, so
a large posts index is not bound by the per-request timeout. The finished
task reports per-document failures in its response.
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
from searchbroker.engines.common import INDEX_BASE_POSTS, INDEX_BASES

if TYPE_CHECKING:
    from searchbroker.config.settings import ElasticsearchSettings, SearchBackendSettings, Settings

logger = logging.getLogger(__name__)

_CHANNEL_TYPE_SCRIPT = "ctx._source.channel_type = params.channel_type"


class ElasticsearchEngine(SearchEngine):
    """Search engine backed by an Elasticsearch cluster.

    Authenticates with an API key when one is configured, otherwise with
    HTTP basic auth when a username and password are set.

    Args:
        settings: Initial configuration snapshot.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()
        self._version: str | None = None

    @property
    def name(self) -> str:
        return "elasticsearch"

    @property
    def version(self) -> str | None:
        """Cluster version reported on start, None while stopped."""
        return self._version

    @property
    def _config(self) -> ElasticsearchSettings:
        return self._settings.elasticsearch

    def is_enabled(self) -> bool:
        return self._config.enable_indexing

    def is_active(self) -> bool:
        return self.is_enabled() and self._client is not None

    def update_config(self, settings: Settings) -> None:
        self._settings = settings

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> None:
        if not self.is_enabled():
            return

        async with self._lock:
            if self._client is not None:
                return

            client = self._build_client(self._config)
            try:
                info = await self._cluster_info(client)
            except BaseException:
                await client.aclose()
                raise

            self._client = client
            self._version = info.get("version", {}).get("number", "unknown")
            logger.info(
                "Connected to Elasticsearch cluster: %s (v%s)",
                info.get("cluster_name", "unknown"),
                self._version,
            )

    async def stop(self) -> None:
        async with self._lock:
            if self._client is None:
                return
            client, self._client = self._client, None
            self._version = None
            await client.aclose()
            logger.info("Elasticsearch engine stopped")

    # ── Backfill ─────────────────────────────────────────────────────────

    async def backfill_posts_channel_type(self, channel_ids: Sequence[str], channel_type: str) -> None:
        client = self._client
        if client is None:
            raise EngineNotStartedError("Elasticsearch engine is not started.")

        body: dict[str, Any] = {
            "query": {"terms": {"channel_id": list(channel_ids)}},
            "script": {
                "source": _CHANNEL_TYPE_SCRIPT,
                "lang": "painless",
                "params": {"channel_type": channel_type},
            },
        }
        index = f"{self._config.index_prefix}{INDEX_BASE_POSTS}*"

        try:
            resp = await client.post(
                f"/{index}/_update_by_query",
                params={"refresh": "true", "wait_for_completion": "false"},
                json=body,
            )
            resp.raise_for_status()
            task_id = resp.json()["task"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise BulkUpdateError(f"Elasticsearch channel_type backfill failed: {e}") from e

        logger.debug("Elasticsearch update-by-query task %s started for channel_type=%s", task_id, channel_type)
        data = await self._wait_for_task(client, task_id)
        failures = data.get("failures") or []
        if failures or data.get("timed_out"):
            raise BulkUpdateError(
                f"Elasticsearch channel_type backfill incomplete: "
                f"{len(failures)} failures, timed_out={data.get('timed_out', False)}"
            )
        logger.debug("Elasticsearch updated %s posts to channel_type=%s", data.get("updated", 0), channel_type)

    # ── Admin ────────────────────────────────────────────────────────────

    async def test_config(self, settings: Settings) -> None:
        client = self._build_client(settings.elasticsearch)
        try:
            await self._cluster_info(client)
        finally:
            await client.aclose()

    async def purge_indexes(self, indexes: Sequence[str] | None = None) -> None:
        client = self._client
        if client is None:
            raise EngineNotStartedError("Elasticsearch engine is not started.")

        prefix = self._config.index_prefix
        names = list(indexes) if indexes is not None else [f"{prefix}{base}" for base in INDEX_BASES]
        for name in names:
            try:
                resp = await client.delete(f"/{name}")
                if resp.status_code != 404:
                    resp.raise_for_status()
            except httpx.HTTPError:
                logger.warning("Error deleting Elasticsearch index %s", name, exc_info=True)

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _build_client(config: SearchBackendSettings) -> httpx.AsyncClient:
        if not config.connection_url:
            raise EngineConfigurationError("Elasticsearch connection_url is not set.")

        headers = {"Content-Type": "application/json"}
        auth = None
        if config.api_key:
            headers["Authorization"] = f"ApiKey {config.api_key}"
        elif config.username and config.password:
            auth = httpx.BasicAuth(config.username, config.password)

        return httpx.AsyncClient(
            base_url=config.connection_url,
            timeout=httpx.Timeout(config.request_timeout_seconds),
            headers=headers,
            auth=auth,
        )

    async def _wait_for_task(self, client: httpx.AsyncClient, task_id: str) -> dict[str, Any]:
        """Poll ``_tasks/{task_id}`` until it completes and return the task's response body.

        A run that is cancelled or passes its deadline while polling leaves the
        task running on the cluster; re-running it later is harmless.
        """
        while True:
            try:
                resp = await client.get(f"/_tasks/{task_id}")
                resp.raise_for_status()
                status = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                raise BulkUpdateError(f"Failed to poll Elasticsearch task {task_id}: {e}") from e

            if status.get("completed"):
                if status.get("error"):
                    raise BulkUpdateError(f"Elasticsearch task {task_id} failed: {status['error']}")
                return status.get("response") or {}
            await asyncio.sleep(self._config.task_poll_interval_seconds)

    @staticmethod
    async def _cluster_info(client: httpx.AsyncClient) -> dict[str, Any]:
        try:
            resp = await client.get("/")
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EngineConnectionError(f"Failed to connect to Elasticsearch: {e}") from e
