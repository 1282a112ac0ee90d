"""Index settings and mappings for dataset documents."""

from __future__ import annotations

from typing import Any

from dsindex.core.config import EMBEDDING_DIM

__all__ = [
    "AUTOCOMPLETE_MAX_GRAM",
    "AUTOCOMPLETE_MIN_GRAM",
    "FIELD_NAMES",
    "build_index_body",
]

AUTOCOMPLETE_MIN_GRAM = 1
AUTOCOMPLETE_MAX_GRAM = 30

FIELD_NAMES = (
    "title",
    "description",
    "portal",
    "vector",
    "department",
    "categories",
    "columns",
    "isTest",
)


def _autocomplete_text() -> dict[str, Any]:
    return {
        "type": "text",
        "fields": {
            "complete": {
                "type": "text",
                "analyzer": "autocomplete_analyzer",
                "search_analyzer": "autocomplete_search_analyzer",
            },
        },
    }


def build_index_body(dim: int = EMBEDDING_DIM) -> dict[str, Any]:
    """Return the create-index payload (settings plus mappings).

    ``title`` and ``description`` carry a ``complete`` sub-field indexed
    with lowercase edge n-grams for prefix matching; queries against it are
    lowercased but not n-grammed.
    """

    return {
        "settings": {
            "analysis": {
                "analyzer": {
                    "autocomplete_analyzer": {
                        "tokenizer": "autocomplete",
                        "filter": ["lowercase"],
                    },
                    "autocomplete_search_analyzer": {
                        "tokenizer": "keyword",
                        "filter": ["lowercase"],
                    },
                },
                "tokenizer": {
                    "autocomplete": {
                        "type": "edge_ngram",
                        "min_gram": AUTOCOMPLETE_MIN_GRAM,
                        "max_gram": AUTOCOMPLETE_MAX_GRAM,
                        "token_chars": ["letter", "digit", "whitespace"],
                    },
                },
            },
        },
        "mappings": {
            "properties": {
                "title": _autocomplete_text(),
                "description": _autocomplete_text(),
                "portal": {"type": "text"},
                "vector": {"type": "knn_vector", "dimension": dim},
                "department": {"type": "text"},
                "categories": {"type": "text"},
                "columns": {"type": "text"},
                "isTest": {"type": "boolean"},
            },
        },
    }
