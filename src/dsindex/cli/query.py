"""Typer command group for keyword and similarity queries."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from dsindex.cli.context import build_context, handle_failure, require_context
from dsindex.modules.embeddings import ModelUnavailable
from dsindex.modules.search import (
    EngineQueryFailed,
    SearchService,
    SimilaritySearch,
)
from dsindex.modules.search.queries import DEFAULT_LIMIT

_query_app = typer.Typer(
    name="query",
    help="Query the dataset index by keywords and facets or by similarity.",
    no_args_is_help=True,
    invoke_without_command=False,
)


@_query_app.callback()
def configure_query_commands(
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
    """Initialize shared context for query commands."""

    ctx.obj = build_context(
        command="query",
        workspace=workspace,
        log_level=log_level,
        index=index,
    )


@_query_app.command(
    "search",
    help=(
        "Rank datasets by fuzzy title/description match, narrowed by facets. "
        "Test datasets are ranked last rather than excluded."
    ),
)
def search_datasets(  # noqa: PLR0913 - CLI surface area intentionally explicit
    ctx: typer.Context,
    term: str = typer.Argument(
        "",
        metavar="[TERM]",
        help="Free-text term; omit to match every dataset.",
    ),
    portal: str | None = typer.Option(
        None,
        "--portal",
        "-p",
        help="Only datasets of this portal.",
    ),
    column: list[str] = typer.Option(
        None,
        "--column",
        "-c",
        metavar="FIELD",
        help="Require a column field (repeatable).",
    ),
    category: list[str] = typer.Option(
        None,
        "--category",
        metavar="LABEL",
        help="Require a category label (repeatable).",
    ),
    department: list[str] = typer.Option(
        None,
        "--department",
        metavar="NAME",
        help="Require a department (repeatable).",
    ),
    offset: int = typer.Option(0, "--offset", min=0, help="Window start."),
    limit: int = typer.Option(
        DEFAULT_LIMIT,
        "--limit",
        "-n",
        min=1,
        help="Window size.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit {ids, total} as JSON.",
    ),
) -> None:
    """Print matching dataset identifiers and the total match count."""

    context = require_context(ctx)
    service = SearchService(
        context.engine,
        context.config.search.index,
        logger=context.logger.bind(component="search"),
    )
    try:
        result = service.search(
            term,
            portal=portal,
            columns=tuple(column or ()),
            categories=tuple(category or ()),
            departments=tuple(department or ()),
            offset=offset,
            limit=limit,
        )
    except EngineQueryFailed as exc:
        handle_failure("Search", exc, logger=context.logger)
        return

    if json_output:
        payload = {"ids": list(result.ids), "total": result.total}
        typer.echo(json.dumps(payload, indent=2))
        return

    if not result.ids:
        typer.secho("No datasets matched.", fg=typer.colors.YELLOW)
    for doc_id in result.ids:
        typer.echo(doc_id)
    typer.secho(
        f"Showing {len(result.ids)} of {result.total} "
        f"(offset {offset})",
        fg=typer.colors.CYAN,
    )


@_query_app.command(
    "similar",
    help=(
        "Rank datasets by semantic similarity to TEXT. Engine failures "
        "produce an empty result instead of an error."
    ),
)
def similar_datasets(
    ctx: typer.Context,
    text: str = typer.Argument(
        ...,
        metavar="TEXT",
        help="Description to compare datasets against.",
    ),
    portal: str | None = typer.Option(
        None,
        "--portal",
        "-p",
        help="Only datasets of this portal.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit [{id, name, portal, score}] as JSON.",
    ),
) -> None:
    """Print datasets ranked by similarity, best first."""

    context = require_context(ctx)
    search = SimilaritySearch(
        context.engine,
        context.config.search.index,
        context.vectorizer,
        context.store,
        result_cap=context.config.similarity.result_cap,
        logger=context.logger.bind(component="similarity"),
    )
    try:
        results = search.find_similar(text, portal)
    except ModelUnavailable as exc:
        handle_failure("Similarity search", exc, logger=context.logger)
        return

    if json_output:
        payload = [
            {
                "id": item.record.id,
                "name": item.record.name,
                "portal": item.record.portal_id,
                "score": item.score,
            }
            for item in results
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not results:
        typer.secho("No similar datasets found.", fg=typer.colors.YELLOW)
        return
    for item in results:
        score = "-" if item.score is None else f"{item.score:.3f}"
        typer.echo(f"{score}  {item.record.id}  {item.record.name}")


def create_query_app() -> typer.Typer:
    """Return the Typer sub-application for ``dsindex query``."""

    return _query_app


__all__ = ["create_query_app"]
