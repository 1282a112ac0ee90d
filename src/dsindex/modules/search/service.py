"""Keyword and facet search over the dataset index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from dsindex.core.logging import Logger, get_logger
from dsindex.modules.search.engine import SearchEngine
from dsindex.modules.search.errors import EngineQueryFailed, SearchEngineError
from dsindex.modules.search.queries import DEFAULT_LIMIT, build_search_query

__all__ = ["SearchResult", "SearchService"]


@dataclass(frozen=True, slots=True)
class SearchResult:
    """Identifiers in the requested window and the exact total match count."""

    ids: tuple[str, ...]
    total: int


class SearchService:
    """Run ranked keyword/facet queries; failures propagate to the caller."""

    def __init__(
        self,
        engine: SearchEngine,
        index: str,
        *,
        logger: Logger | None = None,
    ) -> None:
        self._engine = engine
        self._index = index
        self.logger = logger or get_logger(__name__, component="search")

    def search(
        self,
        term: str = "",
        *,
        portal: str | None = None,
        columns: Sequence[str] = (),
        categories: Sequence[str] = (),
        departments: Sequence[str] = (),
        offset: int = 0,
        limit: int = DEFAULT_LIMIT,
    ) -> SearchResult:
        """Return one page of matching identifiers and the true total.

        The total comes from a separate count request so it is not capped by
        the engine's search window.

        Raises:
            EngineQueryFailed: If the search or the count request fails, or
                any shard reports a failure.
        """

        query, count = build_search_query(
            term,
            portal=portal,
            columns=columns,
            categories=categories,
            departments=departments,
            offset=offset,
            limit=limit,
        )
        self.logger.info(
            "search-query",
            term=term,
            portal=portal,
            columns=list(columns),
            categories=list(categories),
            departments=list(departments),
            offset=offset,
            limit=limit,
        )

        try:
            response = self._engine.search(self._index, query.to_body())
            if response.shard_failures:
                raise EngineQueryFailed(
                    "Search partially failed: "
                    + "; ".join(response.shard_failures)
                )
            total = self._engine.count(self._index, count.to_body())
        except SearchEngineError as exc:
            self.logger.error("search-query-failed", error=str(exc))
            raise EngineQueryFailed(f"Search failed: {exc}") from exc
        except EngineQueryFailed as exc:
            self.logger.error("search-query-failed", error=str(exc))
            raise

        self.logger.info(
            "search-query-done",
            hits=len(response.ids),
            total=total,
        )
        return SearchResult(ids=response.ids, total=total)
