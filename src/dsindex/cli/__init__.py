"""Command-line interface primitives for :mod:`dsindex`.

This module exposes the Typer application behind the ``dsindex`` console
script and wires the ``init`` command plus the ``index``, ``query`` and
``records`` command groups.

Example:
    >>> import typer
    >>> from dsindex.cli import create_app
    >>> app = create_app()
    >>> isinstance(app, typer.Typer)
    True
"""

from __future__ import annotations

import os
from pathlib import Path

import typer

from dsindex.cli.index import create_index_app
from dsindex.cli.init import init_workspace
from dsindex.cli.query import create_query_app
from dsindex.cli.records import create_records_app
from dsindex.core.config import (
    AppConfig,
    DEFAULTS_RESOURCE_NAME,
    env_config_from,
)
from dsindex.core.logging import configure_logging, get_logger
from dsindex.core.paths import resolve_workspace

_app_help = (
    "Keep a dataset search index in sync with its record store and query it."
    "\n\n"
    "Use `dsindex init` to bootstrap a workspace and write `dsindex.toml`."
)


def _emit_workspace_summary(
    *,
    config: AppConfig,
    config_file: Path,
    written: bool,
) -> None:
    """Print a human-friendly summary of bootstrap results."""

    typer.secho("Workspace initialized", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  workspace: {config.workspace}")
    typer.echo(f"  config: {config_file}")
    typer.echo(f"  defaults: packaged resource ({DEFAULTS_RESOURCE_NAME})")
    typer.echo(f"  log level: {config.log_level}")
    typer.echo(f"  search hosts: {', '.join(config.search.hosts)}")
    typer.echo(f"  index: {config.search.index}")
    typer.echo(
        f"  embeddings: {config.embeddings.provider}:"
        f"{config.embeddings.model} (dim {config.embeddings.dim})"
    )
    if not written:
        typer.echo("  note: existing dsindex.toml kept (use --force)")


def create_app() -> "typer.Typer":
    """Return the Typer application powering the ``dsindex`` CLI.

    Returns:
        A configured Typer application ready to be invoked by ``dsindex``.
    """

    app = typer.Typer(
        help=_app_help,
        no_args_is_help=True,
        rich_markup_mode="rich",
        invoke_without_command=False,
        cls=typer.core.TyperGroup,
    )

    app.add_typer(create_index_app(), name="index")
    app.add_typer(create_query_app(), name="query")
    app.add_typer(create_records_app(), name="records")

    @app.callback()
    def main_callback() -> None:
        """Top-level CLI callback ensuring subcommands are dispatched."""

        return None

    @app.command(
        "init",
        help="Bootstrap a workspace and seed dsindex.toml.",
    )
    def init_command(
        workspace: Path | None = typer.Option(
            None,
            "--workspace",
            "-w",
            help=(
                "Override the workspace directory (defaults to "
                "$HOME/.dsindex or DSINDEX_WORKSPACE)."
            ),
        ),
        force: bool = typer.Option(
            False,
            "--force",
            help="Overwrite an existing dsindex.toml.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            "-l",
            help="Override the logging level (DEBUG/INFO/WARNING/ERROR).",
        ),
        hosts: str | None = typer.Option(
            None,
            "--hosts",
            help="Comma-separated search engine URLs.",
        ),
        index: str | None = typer.Option(
            None,
            "--index",
            help="Index name to record in dsindex.toml.",
        ),
    ) -> None:
        """Initialize the local workspace."""

        env_workspace = os.environ.get("DSINDEX_WORKSPACE")
        env_workspace_path = (
            Path(env_workspace).expanduser() if env_workspace else None
        )

        try:
            paths = resolve_workspace(
                workspace_override=workspace,
                env_override=env_workspace_path,
            )
        except ValueError as exc:
            typer.secho(f"Workspace error: {exc}", fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc

        try:
            config, written = init_workspace(
                workspace=paths.workspace,
                force=force,
                log_level=log_level,
                search_hosts=hosts,
                index=index,
                env_config=env_config_from(os.environ),
            )
        except (ValueError, OSError) as exc:
            message = f"Failed to initialize workspace: {exc}"
            typer.secho(message, fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc

        configure_logging(
            level=config.log_level,
            workspace_path=config.workspace,
        )
        logger = get_logger(__name__, command="init")
        logger.info(
            "init-complete",
            workspace=str(config.workspace),
            config_written=written,
            index=config.search.index,
        )

        _emit_workspace_summary(
            config=config,
            config_file=paths.config_file,
            written=written,
        )

    return app


__all__ = ["create_app"]
