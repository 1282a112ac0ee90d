"""Workspace path helpers for :mod:`dsindex`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dsindex.core.config import USER_CONFIG_FILENAME

__all__ = ["WorkspacePaths", "resolve_workspace"]


@dataclass(frozen=True, slots=True)
class WorkspacePaths:
    """Resolved locations for a workspace instance.

    Example:
        >>> from pathlib import Path
        >>> paths = WorkspacePaths(
        ...     workspace=Path("/tmp/dsindex"),
        ...     config_file=Path("/tmp/dsindex/dsindex.toml"),
        ...     logs_dir=Path("/tmp/dsindex/logs"),
        ... )
        >>> paths.logs_dir.name
        'logs'
    """

    workspace: Path
    config_file: Path
    logs_dir: Path


def resolve_workspace(
    *,
    workspace_override: Path | None = None,
    env_override: Path | None = None,
) -> WorkspacePaths:
    """Resolve canonical workspace locations.

    Args:
        workspace_override: Optional override provided by CLI flags.
        env_override: Optional override from environment variables.

    Raises:
        ValueError: If the resolved workspace points to a regular file.
    """

    base = workspace_override or env_override or Path.home() / ".dsindex"
    raw = Path(base).expanduser()
    if not raw.is_absolute():
        raw = Path.cwd() / raw
    workspace = raw.resolve(strict=False)

    if workspace.exists() and workspace.is_file():
        raise ValueError(f"Workspace file path not allowed: {workspace}")

    return WorkspacePaths(
        workspace=workspace,
        config_file=workspace / USER_CONFIG_FILENAME,
        logs_dir=workspace / "logs",
    )
