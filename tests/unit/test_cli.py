"""Tests for the command-line entry point."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import httpx
import pytest

from searchbroker.api.app import SETTINGS_ENV_VAR, STORE_ENV_VAR, create_app, load_settings
from searchbroker.cli import _backfill, _load_store_factory, _serve, main
from searchbroker.config.settings import SearchBackendSettings, ServerSettings, Settings
from searchbroker.engines.typesense.engine import TypesenseEngine
from searchbroker.models.channel import Channel, ChannelType
from searchbroker.models.system import SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE
from searchbroker.store.memory import MemoryStore

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def uvicorn_run(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    import uvicorn

    run = MagicMock()
    monkeypatch.setattr(uvicorn, "run", run)
    # _serve exports both; registering them here restores the environment afterwards.
    monkeypatch.setenv(SETTINGS_ENV_VAR, "")
    monkeypatch.setenv(STORE_ENV_VAR, "")
    return run


@pytest.fixture
def typesense_server(monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
    """Route Typesense clients to a healthy in-process server; return the request log."""
    requests: list[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/health":
            return httpx.Response(200, json={"ok": True})
        if request.method == "PATCH":
            return httpx.Response(200, json={"num_updated": 4})
        return httpx.Response(200, json={})

    def _build(config: SearchBackendSettings) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=config.connection_url, transport=httpx.MockTransport(_handle))

    monkeypatch.setattr(TypesenseEngine, "_build_client", staticmethod(_build))
    return requests


# ── Store loading ────────────────────────────────────────────────────────────


class TestLoadStoreFactory:
    def test_module_callable(self) -> None:
        assert isinstance(_load_store_factory("searchbroker.store.memory:MemoryStore")(), MemoryStore)

    def test_malformed_target_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            _load_store_factory("searchbroker.store.memory")
        assert exc.value.code == 1
        assert "module:callable" in capsys.readouterr().err

    def test_missing_attribute_exits(self) -> None:
        with pytest.raises(SystemExit):
            _load_store_factory("searchbroker.store.memory:NoSuchStore")

    def test_missing_module_exits(self) -> None:
        with pytest.raises(SystemExit):
            _load_store_factory("searchbroker.no_such_module:Store")


# ── Backfill ─────────────────────────────────────────────────────────────────


class TestBackfillCommand:
    async def test_no_enabled_engine_fails(self, settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        code = await _backfill(settings, MemoryStore())
        assert code == 1
        assert "No search engine is active" in capsys.readouterr().err

    async def test_completed_run_writes_marker(
        self, settings: Settings, typesense_server: list[httpx.Request], capsys: pytest.CaptureFixture[str]
    ) -> None:
        settings = settings.model_copy(
            update={
                "typesense": SearchBackendSettings(
                    enable_indexing=True, connection_url="http://typesense:8108", api_key="k"
                )
            }
        )
        store = MemoryStore(
            [
                Channel(id="town-square", type=ChannelType.OPEN),
                Channel(id="secret", type=ChannelType.PRIVATE),
            ]
        )

        code = await _backfill(settings, store)

        assert code == 0
        assert "Backfill completed." in capsys.readouterr().out
        marker = await store.system().get_by_name(SYSTEM_POST_CHANNEL_TYPE_BACKFILL_COMPLETE)
        assert marker.value == "true"
        patches = [r for r in typesense_server if r.method == "PATCH"]
        assert [r.url.params["filter_by"] for r in patches] == [
            "channel_id:=[`town-square`]",
            "channel_id:=[`secret`]",
        ]

    async def test_marker_skips_second_run(self, settings: Settings, typesense_server: list[httpx.Request]) -> None:
        settings = settings.model_copy(
            update={"typesense": SearchBackendSettings(enable_indexing=True, connection_url="http://typesense:8108")}
        )
        store = MemoryStore([Channel(id="town-square", type=ChannelType.OPEN)])
        assert await _backfill(settings, store) == 0
        typesense_server.clear()

        assert await _backfill(settings, store) == 0

        assert not [r for r in typesense_server if r.method == "PATCH"]


# ── Serve ────────────────────────────────────────────────────────────────────


class TestServeCommand:
    def test_runs_app_factory_with_configured_workers(self, settings: Settings, uvicorn_run: MagicMock) -> None:
        settings = settings.model_copy(update={"server": ServerSettings(host="127.0.0.1", port=9000, workers=4)})

        _serve(settings, None)

        uvicorn_run.assert_called_once_with(
            "searchbroker.api.app:create_app",
            factory=True,
            host="127.0.0.1",
            port=9000,
            workers=4,
            log_level="debug",
        )

    def test_command_line_overrides(self, settings: Settings, uvicorn_run: MagicMock) -> None:
        _serve(settings, None, host="10.0.0.1", port=8181, workers=2)

        kwargs = uvicorn_run.call_args.kwargs
        assert (kwargs["host"], kwargs["port"], kwargs["workers"]) == ("10.0.0.1", 8181, 2)

    def test_workers_receive_effective_settings(self, settings: Settings, uvicorn_run: MagicMock) -> None:
        settings = settings.model_copy(
            update={"typesense": SearchBackendSettings(enable_indexing=True, connection_url="http://typesense:8108")}
        )

        _serve(settings, "searchbroker.store.memory:MemoryStore", workers=3)

        loaded = load_settings()
        assert loaded.typesense.enable_indexing
        assert loaded.typesense.connection_url == "http://typesense:8108"
        assert loaded.server.workers == 3
        assert loaded.observability.log_level == "debug"

    def test_store_target_exported(
        self, settings: Settings, uvicorn_run: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _serve(settings, "searchbroker.store.memory:MemoryStore")
        assert os.environ[STORE_ENV_VAR] == "searchbroker.store.memory:MemoryStore"

        built: list[MemoryStore] = []

        def _factory() -> MemoryStore:
            built.append(MemoryStore())
            return built[-1]

        monkeypatch.setattr("searchbroker.store.memory.MemoryStore", _factory)
        create_app()
        assert len(built) == 1

    def test_main_serve_passes_workers(self, uvicorn_run: MagicMock, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("searchbroker.observability.logging.setup_logging", MagicMock())

        main(["serve", "--workers", "2", "--port", "8282"])

        kwargs = uvicorn_run.call_args.kwargs
        assert kwargs["workers"] == 2
        assert kwargs["port"] == 8282
        assert kwargs["factory"] is True

    def test_main_serve_rejects_bad_store(self, uvicorn_run: MagicMock, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("searchbroker.observability.logging.setup_logging", MagicMock())

        with pytest.raises(SystemExit):
            main(["serve", "--store", "searchbroker.store.memory:NoSuchStore"])
        uvicorn_run.assert_not_called()


# ── Argument parsing ─────────────────────────────────────────────────────────


class TestMain:
    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "SearchBroker" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["backfill", "--config", str(tmp_path / "missing.yaml")])
        assert exc.value.code == 1

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2
