"""Typer command group for index maintenance."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import typer

from dsindex.cli.context import build_context, handle_failure, require_context
from dsindex.modules.records import RecordStoreError
from dsindex.modules.search import (
    IndexWriter,
    SearchIndexError,
    SyncFailed,
    SyncOptions,
    SyncOrchestrator,
)

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]

_index_app = typer.Typer(
    name="index",
    help=(
        "Maintain the dataset search index: create it and keep it in sync "
        "with the record store."
    ),
    no_args_is_help=True,
    invoke_without_command=False,
)


@_index_app.callback()
def configure_index_commands(
    ctx: typer.Context,
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help=(
            "Override workspace directory (defaults to "
            "DSINDEX_WORKSPACE or ~/.dsindex)."
        ),
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override log level (defaults to config log_level).",
    ),
    index: str | None = typer.Option(
        None,
        "--index",
        help="Override the index name from configuration.",
    ),
) -> None:
    """Initialize shared context for index commands."""

    ctx.obj = build_context(
        command="index",
        workspace=workspace,
        log_level=log_level,
        index=index,
    )


@_index_app.command(
    "ensure",
    help="Create the index with the dataset schema if it does not exist.",
)
def ensure_index(
    ctx: typer.Context,
    recreate: bool = typer.Option(
        False,
        "--recreate",
        help="Drop the existing index first.",
    ),
) -> None:
    context = require_context(ctx)
    writer = IndexWriter(
        engine=context.engine,
        index=context.config.search.index,
        dim=context.config.embeddings.dim,
        logger=context.logger.bind(component="index-writer"),
    )
    try:
        ready = writer.ensure_index(recreate=recreate)
    except SearchIndexError as exc:
        handle_failure("Index ensure", exc, logger=context.logger)
        return

    name = context.config.search.index
    if ready:
        typer.secho(f"Index {name} is ready", fg=typer.colors.GREEN)
    else:
        typer.secho(
            f"Index {name} could not be created; see the log for details.",
            fg=typer.colors.YELLOW,
        )


@_index_app.command(
    "sync",
    help=(
        "Write records updated since a watermark into the index, page by "
        "page, then purge the given identifiers. The first failure aborts "
        "the run; re-run with an adjusted --since to resume."
    ),
)
def sync_index(  # noqa: PLR0913 - CLI surface area intentionally explicit
    ctx: typer.Context,
    since: datetime = typer.Option(
        ...,
        "--since",
        formats=_DATE_FORMATS,
        help="Watermark: only records updated at or after this time (UTC).",
    ),
    recreate: bool = typer.Option(
        False,
        "--recreate",
        help="Drop and recreate the index before populating it.",
    ),
    delete: list[str] = typer.Option(
        None,
        "--delete",
        "-d",
        metavar="ID",
        help="Dataset identifier to remove from the index (repeatable).",
    ),
    portal: list[str] = typer.Option(
        None,
        "--portal",
        "-p",
        metavar="PORTAL",
        help="Only sync records of this portal (repeatable).",
    ),
    skip_embedding: bool = typer.Option(
        False,
        "--skip-embedding",
        help="Write zero vectors instead of loading the embedding model.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit the run summary as JSON.",
    ),
) -> None:
    """Run one sync pass and print its summary."""

    context = require_context(ctx)
    config = context.config
    options = SyncOptions(
        watermark=since,
        recreate=recreate,
        ids_to_delete=tuple(delete or ()),
        portal_ids=tuple(portal) if portal else None,
        skip_embedding=skip_embedding,
    )

    try:
        orchestrator = SyncOrchestrator(
            store=context.store,
            vectorizer=context.vectorizer,
            writer=IndexWriter(
                engine=context.engine,
                index=config.search.index,
                dim=config.embeddings.dim,
                logger=context.logger.bind(component="index-writer"),
            ),
            settings=config.sync,
            logger=context.logger.bind(component="sync"),
        )
        summary = orchestrator.run(options)
    except (SyncFailed, RecordStoreError) as exc:
        handle_failure("Sync", exc, logger=context.logger)
        return

    if json_output:
        payload = asdict(summary)
        payload["state"] = str(summary.state)
        payload["deleted_ids"] = list(summary.deleted_ids)
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    typer.secho("Sync complete", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  index: {config.search.index}")
    typer.echo(f"  eligible records: {summary.total_eligible}")
    typer.echo(
        f"  pages: {summary.pages_processed} of {summary.pages_planned}"
    )
    typer.echo(f"  documents written: {summary.documents_written}")
    typer.echo(f"  write batches: {summary.write_batches}")
    typer.echo(f"  deleted: {len(summary.deleted_ids)}")
    if not summary.index_ready:
        typer.secho(
            "  note: index creation reported an error; check the log",
            fg=typer.colors.YELLOW,
        )


def create_index_app() -> typer.Typer:
    """Return the Typer sub-application for ``dsindex index``."""

    return _index_app


__all__ = ["create_index_app"]
