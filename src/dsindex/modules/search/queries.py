"""Build keyword/facet query bodies for the dataset index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

__all__ = [
    "CountExpression",
    "DEFAULT_LIMIT",
    "NEGATIVE_BOOST",
    "QueryExpression",
    "build_search_query",
]

NEGATIVE_BOOST = 0.01
DEFAULT_LIMIT = 20
SEARCH_FIELDS: tuple[str, ...] = ("title", "description")

Clause = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class QueryExpression:
    """Boosted relevance plus facet clauses with a pagination window."""

    relevance: Clause
    filters: tuple[Clause, ...]
    offset: int = 0
    limit: int = DEFAULT_LIMIT
    source_fields: tuple[str, ...] = ("title",)

    @property
    def must(self) -> list[Clause]:
        boosted = {
            "boosting": {
                "positive": self.relevance,
                "negative": {"match": {"isTest": True}},
                "negative_boost": NEGATIVE_BOOST,
            }
        }
        return [boosted, *self.filters]

    def to_body(self) -> dict[str, Any]:
        return {
            "query": {"bool": {"must": self.must}},
            "from": self.offset,
            "size": self.limit,
            "_source": list(self.source_fields),
        }


@dataclass(frozen=True, slots=True)
class CountExpression:
    """Unbounded count over the same filters, without boosting or paging."""

    relevance: Clause
    filters: tuple[Clause, ...] = field(default_factory=tuple)

    @property
    def must(self) -> list[Clause]:
        return [self.relevance, *self.filters]

    def to_body(self) -> dict[str, Any]:
        return {"query": {"bool": {"must": self.must}}}


def _relevance(term: str) -> Clause:
    if term:
        return {
            "multi_match": {
                "fields": list(SEARCH_FIELDS),
                "query": term,
                "fuzziness": "AUTO",
            }
        }
    return {"match_all": {}}


def build_search_query(
    term: str = "",
    portal: str | None = None,
    columns: Sequence[str] = (),
    categories: Sequence[str] = (),
    departments: Sequence[str] = (),
    offset: int = 0,
    limit: int = DEFAULT_LIMIT,
) -> tuple[QueryExpression, CountExpression]:
    """Compose the ranked query and its matching count query.

    Every supplied facet value adds one required ``match`` clause, so
    ``columns=["age"], categories=["health"]`` adds exactly two.

    Raises:
        ValueError: If ``offset`` is negative or ``limit`` is below one.
    """

    if offset < 0:
        raise ValueError("offset must be >= 0")
    if limit < 1:
        raise ValueError("limit must be >= 1")

    filters: list[Clause] = []
    if portal:
        filters.append({"match": {"portal": portal}})
    filters.extend({"match": {"columns": value}} for value in columns)
    filters.extend({"match": {"categories": value}} for value in categories)
    filters.extend({"match": {"department": value}} for value in departments)

    relevance = _relevance(term)
    frozen = tuple(filters)
    return (
        QueryExpression(
            relevance=relevance,
            filters=frozen,
            offset=offset,
            limit=limit,
        ),
        CountExpression(relevance=relevance, filters=frozen),
    )
