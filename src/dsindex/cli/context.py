"""Shared wiring for ``dsindex`` command groups."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import typer

from dsindex.core.config import (
    AppConfig,
    env_config_from,
    load_config,
    load_packaged_defaults,
    load_user_config,
)
from dsindex.core.logging import Logger, configure_logging, get_logger
from dsindex.core.paths import WorkspacePaths, resolve_workspace
from dsindex.modules.embeddings import (
    Vectorizer,
    create_default_provider_registry,
)
from dsindex.modules.records import RecordStore, SqliteRecordStore
from dsindex.modules.search import OpenSearchEngine, SearchEngine

__all__ = [
    "CLIContext",
    "build_context",
    "build_engine",
    "build_store",
    "build_vectorizer",
    "handle_failure",
    "require_context",
]


def build_engine(config: AppConfig, logger: Logger) -> SearchEngine:
    """Return the engine adapter for ``config.search``."""

    return OpenSearchEngine.from_settings(
        config.search,
        logger=logger.bind(component="opensearch"),
    )


def build_store(config: AppConfig, logger: Logger) -> RecordStore:
    """Return the SQLite record store, creating its schema when missing."""

    store = SqliteRecordStore(
        config.records_path,
        logger=logger.bind(component="record-store"),
    )
    store.ensure_schema()
    return store


def build_vectorizer(config: AppConfig, logger: Logger) -> Vectorizer:
    """Return a vectorizer bound to the built-in provider registry."""

    return Vectorizer(
        providers=create_default_provider_registry(),
        settings=config.embeddings,
        logger=logger.bind(component="vectorizer"),
    )


@dataclass(slots=True)
class CLIContext:
    """Config and lazily built collaborators shared by one invocation."""

    paths: WorkspacePaths
    config: AppConfig
    logger: Logger
    _engine: SearchEngine | None = field(default=None, repr=False)
    _store: RecordStore | None = field(default=None, repr=False)
    _vectorizer: Vectorizer | None = field(default=None, repr=False)

    @property
    def engine(self) -> SearchEngine:
        if self._engine is None:
            self._engine = build_engine(self.config, self.logger)
        return self._engine

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            self._store = build_store(self.config, self.logger)
        return self._store

    @property
    def vectorizer(self) -> Vectorizer:
        if self._vectorizer is None:
            self._vectorizer = build_vectorizer(self.config, self.logger)
        return self._vectorizer


def _resolve_workspace_override(workspace: Path | None) -> WorkspacePaths:
    env_workspace = os.environ.get("DSINDEX_WORKSPACE")
    env_override = Path(env_workspace).expanduser() if env_workspace else None
    return resolve_workspace(
        workspace_override=workspace,
        env_override=env_override,
    )


def build_context(
    *,
    command: str,
    workspace: Path | None,
    log_level: str | None,
    index: str | None = None,
) -> CLIContext:
    """Resolve workspace and config, configure logging, return the context.

    Exits with code 1 when the workspace or configuration is invalid.
    """

    try:
        paths = _resolve_workspace_override(workspace)
    except ValueError as exc:
        typer.secho(f"Workspace error: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    cli_overrides: dict[str, object] = {"workspace": str(paths.workspace)}
    if log_level:
        cli_overrides["log_level"] = log_level
    if index:
        cli_overrides["search"] = {"index": index}

    try:
        config = load_config(
            defaults=load_packaged_defaults(),
            user_config=load_user_config(paths.config_file),
            env_config=env_config_from(os.environ),
            cli_overrides=cli_overrides,
        )
        configure_logging(
            level=config.log_level,
            workspace_path=config.workspace,
        )
    except (ValueError, OSError) as exc:
        typer.secho(
            f"Failed to load configuration: {exc}",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1) from exc

    logger = get_logger(__name__, command=command)
    logger.debug(
        "cli-context-ready",
        workspace=str(config.workspace),
        index=config.search.index,
        hosts=list(config.search.hosts),
    )
    return CLIContext(paths=paths, config=config, logger=logger)


def require_context(ctx: typer.Context) -> CLIContext:
    context = getattr(ctx, "obj", None)
    if not isinstance(context, CLIContext):
        typer.secho(
            "Internal error: command context not initialized.",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    return context


def handle_failure(
    action: str,
    error: Exception,
    *,
    logger: Logger,
) -> None:
    """Report ``error`` in red and exit with code 1."""

    typer.secho(f"{action} failed: {error}", fg=typer.colors.RED)
    logger.error(
        "cli-action-failed",
        action=action,
        error=str(error),
        error_type=error.__class__.__name__,
    )
    raise typer.Exit(code=1) from error
