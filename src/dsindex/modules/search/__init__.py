"""Dataset search index: schema, sync pipeline and query surfaces."""

from __future__ import annotations

from .documents import (
    IndexDocument,
    build_documents,
    delete_operations,
    partition,
    upsert_operations,
)
from .engine import (
    BulkResult,
    OpenSearchEngine,
    SearchEngine,
    SearchHit,
    SearchResponse,
)
from .errors import (
    BulkDeleteFailed,
    BulkWriteFailed,
    EngineQueryFailed,
    IndexCreationFailed,
    LengthMismatch,
    SearchEngineError,
    SearchIndexError,
    SyncFailed,
)
from .queries import CountExpression, QueryExpression, build_search_query
from .schema import build_index_body
from .service import SearchResult, SearchService
from .similarity import ScoredRecord, SimilaritySearch, build_similarity_query
from .sync import SyncOptions, SyncOrchestrator, SyncState, SyncSummary
from .writer import IndexWriter

__all__ = [
    "BulkDeleteFailed",
    "BulkResult",
    "BulkWriteFailed",
    "CountExpression",
    "EngineQueryFailed",
    "IndexCreationFailed",
    "IndexDocument",
    "IndexWriter",
    "LengthMismatch",
    "OpenSearchEngine",
    "QueryExpression",
    "ScoredRecord",
    "SearchEngine",
    "SearchEngineError",
    "SearchHit",
    "SearchIndexError",
    "SearchResponse",
    "SearchResult",
    "SearchService",
    "SimilaritySearch",
    "SyncFailed",
    "SyncOptions",
    "SyncOrchestrator",
    "SyncState",
    "SyncSummary",
    "build_documents",
    "build_index_body",
    "build_search_query",
    "build_similarity_query",
    "delete_operations",
    "partition",
    "upsert_operations",
]
