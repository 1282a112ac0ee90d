"""Helpers for the ``dsindex init`` command."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from dsindex.core.config import (
    AppConfig,
    load_config,
    load_packaged_defaults,
    render_user_config,
)
from dsindex.core.paths import WorkspacePaths, resolve_workspace


def _ensure_directories(paths: WorkspacePaths) -> None:
    """Create the workspace directories if they are missing."""

    paths.workspace.mkdir(parents=True, exist_ok=True)
    paths.logs_dir.mkdir(parents=True, exist_ok=True)


def init_workspace(
    *,
    workspace: Path,
    force: bool = False,
    log_level: str | None = None,
    search_hosts: str | None = None,
    index: str | None = None,
    env_config: Mapping[str, Any] | None = None,
) -> tuple[AppConfig, bool]:
    """Bootstrap the workspace directory and its ``dsindex.toml``.

    Example:
        >>> from pathlib import Path
        >>> config, written = init_workspace(
        ...     workspace=Path("/tmp/dsindex-example"),
        ... )
        >>> str(config.workspace).endswith("dsindex-example")
        True

    Args:
        workspace: Target directory for the workspace.
        force: Overwrite an existing ``dsindex.toml``.
        log_level: Optional override for the configured logging level.
        search_hosts: Optional comma-separated engine endpoints.
        index: Optional index name.
        env_config: Optional ``DSINDEX_*`` layer; flags still win over it.

    Returns:
        The resolved configuration and whether the config file was written.
    """

    paths = resolve_workspace(workspace_override=workspace)
    _ensure_directories(paths)

    cli_overrides: dict[str, object] = {"workspace": str(paths.workspace)}
    if log_level:
        cli_overrides["log_level"] = log_level
    search: dict[str, object] = {}
    if search_hosts:
        search["hosts"] = search_hosts
    if index:
        search["index"] = index
    if search:
        cli_overrides["search"] = search

    config = load_config(
        defaults=load_packaged_defaults(),
        env_config=env_config,
        cli_overrides=cli_overrides,
    )

    written = False
    if force or not paths.config_file.exists():
        paths.config_file.write_text(
            render_user_config(config),
            encoding="utf-8",
        )
        written = True

    return config, written


__all__ = ["init_workspace"]
