"""Typer command group for the local SQLite record store."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

import typer

from dsindex.cli.context import build_context, handle_failure, require_context
from dsindex.modules.records import Record, RecordStoreError, SqliteRecordStore

_RECORD_DEFAULTS: dict[str, Any] = {
    "name": "",
    "description": "",
    "department": None,
    "categories": [],
    "column_fields": [],
    "is_test": False,
}

_records_app = typer.Typer(
    name="records",
    help="Load and inspect the SQLite record store used for sync.",
    no_args_is_help=True,
    invoke_without_command=False,
)


@_records_app.callback()
def configure_records_commands(
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
) -> None:
    """Initialize shared context for record store commands."""

    ctx.obj = build_context(
        command="records",
        workspace=workspace,
        log_level=log_level,
    )


def _read_records(path: Path) -> Iterator[Record]:
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                row = {**_RECORD_DEFAULTS, **json.loads(line)}
                yield Record.from_row(row)
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(
                    f"{path}:{line_number}: invalid record ({exc})"
                ) from exc


@_records_app.command(
    "import",
    help=(
        "Insert or replace records from a JSON Lines file. Each line needs "
        "id, portal_id and metadata_updated_at; other fields are optional."
    ),
)
def import_records(
    ctx: typer.Context,
    source: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        metavar="FILE",
        help="JSON Lines file with one record per line.",
    ),
) -> None:
    context = require_context(ctx)
    try:
        store = context.store
        if not isinstance(store, SqliteRecordStore):  # pragma: no cover
            raise RecordStoreError("Record import needs the SQLite store.")
        written = store.upsert(list(_read_records(source)))
    except (ValueError, RecordStoreError) as exc:
        handle_failure("Record import", exc, logger=context.logger)
        return

    context.logger.info("records-imported", source=str(source), count=written)
    typer.secho(
        f"Imported {written} records into {context.config.records_path}",
        fg=typer.colors.GREEN,
    )


@_records_app.command(
    "count",
    help="Count records eligible for a sync since a watermark.",
)
def count_records(
    ctx: typer.Context,
    since: datetime = typer.Option(
        datetime(1970, 1, 1),
        "--since",
        formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"],
        help="Watermark (UTC); defaults to the epoch.",
    ),
    portal: list[str] = typer.Option(
        None,
        "--portal",
        "-p",
        metavar="PORTAL",
        help="Restrict to this portal (repeatable).",
    ),
) -> None:
    context = require_context(ctx)
    try:
        if portal:
            total = context.store.count_for_portals(tuple(portal), since)
        else:
            total = context.store.count_all(since)
    except RecordStoreError as exc:
        handle_failure("Record count", exc, logger=context.logger)
        return
    typer.echo(str(total))


def create_records_app() -> typer.Typer:
    """Return the Typer sub-application for ``dsindex records``."""

    return _records_app


__all__ = ["create_records_app"]
