"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (SEARCHBROKER_ prefix)
  3. Default values

A ``Settings`` instance is a configuration *snapshot*: once it has been
handed to the broker or an engine it must not be mutated. Produce a new
snapshot (``model_copy(update=...)`` or a fresh load) and push it through
``Broker.update_config`` instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ServerSettings(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")


class SqlSettings(BaseModel):
    """Primary store settings relevant to search."""

    disable_database_search: bool = Field(
        default=False,
        description="Disable the primary store's native search when no engine is active",
    )


class SearchBackendSettings(BaseModel):
    """Configuration for a single full-text search backend."""

    enable_indexing: bool = Field(default=False, description="Whether this backend is turned on")
    connection_url: str = Field(default="", description="Backend base URL")
    api_key: str | None = Field(default=None, description="API key authentication")
    username: str | None = Field(default=None, description="Authentication username")
    password: str | None = Field(default=None, description="Authentication password")
    index_prefix: str = Field(default="", description="Prefix prepended to every index/collection name")
    request_timeout_seconds: int = Field(default=30, description="Network timeout for backend calls")

    @field_validator("connection_url", mode="before")
    @classmethod
    def _strip_url(cls, v: Any) -> str:
        return str(v or "").strip().rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v


class ElasticsearchSettings(SearchBackendSettings):
    """Elasticsearch backend configuration."""

    task_poll_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay between status checks of a running update-by-query task",
    )


class BackfillSettings(BaseModel):
    """Post channel-type backfill configuration."""

    page_size: int = Field(default=10000, description="Channels read from the store per page")
    run_on_startup: bool = Field(default=True, description="Run the backfill once an engine has started")
    timeout_seconds: float | None = Field(default=None, description="Deadline for a whole backfill run")

    @field_validator("page_size")
    @classmethod
    def _positive_page_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("page_size must be positive")
        return v


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the SEARCHBROKER_ prefix.
    Nested settings use double underscores: SEARCHBROKER_TYPESENSE__ENABLE_INDEXING=true

    Example:
        SEARCHBROKER_SERVER__PORT=9090
        SEARCHBROKER_SQL__DISABLE_DATABASE_SEARCH=true
        SEARCHBROKER_TYPESENSE__CONNECTION_URL=http://localhost:8108
    """

    model_config = {
        "env_prefix": "SEARCHBROKER_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # Component settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    sql: SqlSettings = Field(default_factory=SqlSettings)
    elasticsearch: ElasticsearchSettings = Field(default_factory=ElasticsearchSettings)
    typesense: SearchBackendSettings = Field(default_factory=SearchBackendSettings)
    backfill: BackfillSettings = Field(default_factory=BackfillSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Keys present in the YAML file override the matching environment
        variables; everything else still comes from the environment.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
