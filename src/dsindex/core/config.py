"""Configuration models and loaders for :mod:`dsindex`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from pathlib import Path
from typing import Any, Literal, Mapping

import tomllib
import tomlkit
from pydantic import BaseModel, Field, field_validator, model_validator

from dsindex.resources import get_resource

DEFAULTS_RESOURCE_NAME = "dsindex.defaults.toml"
USER_CONFIG_FILENAME = "dsindex.toml"
ENV_PREFIX = "DSINDEX_"
EMBEDDING_DIM = 512


class SearchSettings(BaseModel):
    """Connection settings for the search engine cluster."""

    hosts: tuple[str, ...] = Field(
        default=("http://localhost:9200",),
        description="Search engine node URLs.",
    )
    index: str = Field(
        default="datasets",
        min_length=1,
        description="Name of the index holding dataset documents.",
    )
    username: str | None = Field(
        default=None,
        description="Optional basic-auth user for the cluster.",
    )
    password: str | None = Field(
        default=None,
        description="Optional basic-auth password for the cluster.",
    )
    verify_certs: bool = Field(
        default=True,
        description="Whether TLS certificates are verified.",
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Request timeout in seconds handed to the engine client.",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @field_validator("hosts", mode="before")
    @classmethod
    def _split_hosts(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(
                part.strip() for part in value.split(",") if part.strip()
            )
        return value

    @field_validator("hosts")
    @classmethod
    def _require_hosts(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("At least one search host is required.")
        return value


class EmbeddingSettings(BaseModel):
    """Embedding model selection and batching."""

    enabled: bool = Field(
        default=True,
        description="Disable to index zero vectors without loading a model.",
    )
    provider: Literal["sentence-transformers", "openai"] = Field(
        default="sentence-transformers",
        description="Embedding provider key registered in the registry.",
    )
    model: str = Field(
        default="distiluse-base-multilingual-cased-v2",
        min_length=1,
        description="Model name passed to the provider.",
    )
    dim: int = Field(
        default=EMBEDDING_DIM,
        ge=1,
        description="Vector dimension stored in the index.",
    )
    batch_size: int = Field(
        default=64,
        ge=1,
        description="Maximum texts per provider request.",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}


class SyncSettings(BaseModel):
    """Paging and batching limits for index synchronization."""

    page_size: int = Field(
        default=500,
        ge=1,
        description="Records fetched from the store per parsing page.",
    )
    write_batch_size: int = Field(
        default=100,
        ge=1,
        description="Documents per bulk upsert request.",
    )
    delete_batch_size: int = Field(
        default=100,
        ge=1,
        description="Identifiers per bulk delete request.",
    )

    model_config = {"frozen": True}


class SimilaritySettings(BaseModel):
    """Similarity search tuning."""

    result_cap: int = Field(
        default=50,
        ge=1,
        description="Maximum number of similar records returned.",
    )

    model_config = {"frozen": True}


class RecordStoreSettings(BaseModel):
    """Location of the SQLite record store."""

    path: Path | None = Field(
        default=None,
        description="SQLite database path; defaults to the workspace.",
    )

    model_config = {"frozen": True}


class AppConfig(BaseModel):
    """Root configuration for the :mod:`dsindex` application."""

    workspace: Path = Field(
        default_factory=lambda: Path("~/.dsindex").expanduser(),
        description="Directory holding logs and the default record store.",
    )
    log_level: str = Field(
        default="INFO",
        description="Default logging level for the application runtime.",
    )
    search: SearchSettings = Field(default_factory=SearchSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    similarity: SimilaritySettings = Field(default_factory=SimilaritySettings)
    records: RecordStoreSettings = Field(default_factory=RecordStoreSettings)

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @field_validator("workspace", mode="before")
    @classmethod
    def _coerce_workspace(cls, value: Any) -> Any:
        if isinstance(value, MappingABC):
            # ``[workspace]`` tables carry the directory under ``root``.
            return value.get("root", "~/.dsindex")
        return value

    @model_validator(mode="after")
    def _post_process(self) -> "AppConfig":
        object.__setattr__(self, "workspace", self.workspace.expanduser())
        object.__setattr__(self, "log_level", self.log_level.upper())
        return self

    @property
    def records_path(self) -> Path:
        """Return the resolved SQLite record store path."""

        if self.records.path is not None:
            return self.records.path.expanduser()
        return self.workspace / "records.sqlite3"


def read_packaged_defaults_text() -> str:
    """Return the raw packaged defaults TOML content."""

    resource = get_resource(DEFAULTS_RESOURCE_NAME)
    return resource.read_text(encoding="utf-8")


def load_packaged_defaults() -> dict[str, Any]:
    """Load the packaged defaults as a plain dictionary.

    Example:
        >>> load_packaged_defaults()["sync"]["page_size"]
        500
    """

    return tomllib.loads(read_packaged_defaults_text())


def load_user_config(path: Path) -> dict[str, Any]:
    """Parse a user ``dsindex.toml``; a missing file yields ``{}``."""

    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


_ENV_KEYS: Mapping[str, tuple[str, ...]] = {
    "WORKSPACE": ("workspace",),
    "LOG_LEVEL": ("log_level",),
    "SEARCH_HOSTS": ("search", "hosts"),
    "SEARCH_INDEX": ("search", "index"),
    "SEARCH_USERNAME": ("search", "username"),
    "SEARCH_PASSWORD": ("search", "password"),
    "EMBEDDINGS_ENABLED": ("embeddings", "enabled"),
    "EMBEDDINGS_PROVIDER": ("embeddings", "provider"),
    "EMBEDDINGS_MODEL": ("embeddings", "model"),
    "RECORDS_PATH": ("records", "path"),
}


def env_config_from(environ: Mapping[str, str]) -> dict[str, Any]:
    """Build a nested config layer from ``DSINDEX_*`` variables.

    Example:
        >>> env_config_from({"DSINDEX_SEARCH_INDEX": "staging"})
        {'search': {'index': 'staging'}}
    """

    layer: dict[str, Any] = {}
    for suffix, path in _ENV_KEYS.items():
        raw = environ.get(f"{ENV_PREFIX}{suffix}")
        if raw is None or not raw.strip():
            continue
        target = layer
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = raw.strip()
    return layer


def _deep_merge(
    base: Mapping[str, Any],
    overlay: Mapping[str, Any],
) -> dict[str, Any]:
    """Recursively merge ``overlay`` into ``base`` returning a new dict."""

    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], MappingABC)
            and isinstance(value, MappingABC)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    *,
    defaults: Mapping[str, Any],
    user_config: Mapping[str, Any] | None = None,
    env_config: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Load configuration according to the precedence stack.

    Args:
        defaults: Packaged defaults shipped with the application.
        user_config: Parsed user ``dsindex.toml`` content.
        env_config: Settings derived from environment variables.
        cli_overrides: Settings supplied via CLI flags.

    Returns:
        A validated :class:`AppConfig` instance.
    """

    stack = dict(defaults)
    for layer in (user_config, env_config, cli_overrides):
        if layer:
            stack = _deep_merge(stack, layer)
    return AppConfig(**stack)


def render_user_config(config: AppConfig) -> str:
    """Render a ``dsindex.toml`` template users can customize."""

    document = tomlkit.document()
    document.add(tomlkit.comment("Generated by dsindex init"))
    document.add(
        tomlkit.comment(
            "Precedence: CLI flags > env vars > dsindex.toml > defaults"
        )
    )
    document.add(tomlkit.comment("Environment overrides:"))
    document.add(tomlkit.comment("  DSINDEX_SEARCH_HOSTS=https://node:9200"))
    document.add(tomlkit.comment("  DSINDEX_SEARCH_INDEX=datasets"))
    document.add(tomlkit.nl())

    document["log_level"] = config.log_level

    workspace_table = tomlkit.table()
    workspace_table["root"] = str(config.workspace)
    document["workspace"] = workspace_table

    search_table = tomlkit.table()
    search_table["hosts"] = list(config.search.hosts)
    search_table["index"] = config.search.index
    search_table["verify_certs"] = config.search.verify_certs
    search_table["timeout"] = config.search.timeout
    if config.search.username:
        search_table["username"] = config.search.username
    document["search"] = search_table

    embeddings_table = tomlkit.table()
    embeddings_table["enabled"] = config.embeddings.enabled
    embeddings_table["provider"] = config.embeddings.provider
    embeddings_table["model"] = config.embeddings.model
    embeddings_table["dim"] = config.embeddings.dim
    embeddings_table["batch_size"] = config.embeddings.batch_size
    document["embeddings"] = embeddings_table

    sync_table = tomlkit.table()
    sync_table["page_size"] = config.sync.page_size
    sync_table["write_batch_size"] = config.sync.write_batch_size
    sync_table["delete_batch_size"] = config.sync.delete_batch_size
    document["sync"] = sync_table

    similarity_table = tomlkit.table()
    similarity_table["result_cap"] = config.similarity.result_cap
    document["similarity"] = similarity_table

    records_table = tomlkit.table()
    records_table["path"] = str(config.records_path)
    document["records"] = records_table

    return tomlkit.dumps(document)


__all__ = [
    "AppConfig",
    "DEFAULTS_RESOURCE_NAME",
    "EMBEDDING_DIM",
    "EmbeddingSettings",
    "RecordStoreSettings",
    "SearchSettings",
    "SimilaritySettings",
    "SyncSettings",
    "USER_CONFIG_FILENAME",
    "env_config_from",
    "load_config",
    "load_packaged_defaults",
    "load_user_config",
    "read_packaged_defaults_text",
    "render_user_config",
]
