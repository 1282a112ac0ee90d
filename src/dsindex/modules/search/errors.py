"""Domain-specific exceptions for index maintenance and querying."""

from __future__ import annotations

from typing import Any

__all__ = [
    "SearchIndexError",
    "SearchEngineError",
    "LengthMismatch",
    "IndexCreationFailed",
    "BulkWriteFailed",
    "BulkDeleteFailed",
    "EngineQueryFailed",
    "SyncFailed",
]


class SearchIndexError(RuntimeError):
    """Base error for search index failures."""


class SearchEngineError(SearchIndexError):
    """Raised by engine adapters when a request cannot be completed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class LengthMismatch(SearchIndexError):
    """Raised when records and vectors cannot be paired by position."""

    def __init__(self, *, records: int, vectors: int) -> None:
        super().__init__(
            f"Cannot pair {records} records with {vectors} vectors."
        )
        self.records = records
        self.vectors = vectors


class IndexCreationFailed(SearchIndexError):
    """Raised (and logged, not propagated) when index creation fails."""

    def __init__(self, index: str, reason: str) -> None:
        super().__init__(f"Failed to create index {index!r}: {reason}")
        self.index = index
        self.reason = reason


class _BulkFailed(SearchIndexError):
    action = "bulk"

    def __init__(self, position: int, total: int, reason: str) -> None:
        super().__init__(
            f"{self.action.capitalize()} batch {position + 1} of {total} "
            f"failed: {reason}"
        )
        self.position = position
        self.total = total
        self.reason = reason


class BulkWriteFailed(_BulkFailed):
    """Raised when the engine rejects any operation of an upsert batch."""

    action = "write"


class BulkDeleteFailed(_BulkFailed):
    """Raised when the engine rejects any operation of a delete batch."""

    action = "delete"


class EngineQueryFailed(SearchIndexError):
    """Raised when a search or count request fails."""


class SyncFailed(SearchIndexError):
    """Raised when a sync run aborts; ``__cause__`` holds the first error."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        page: int | None = None,
        summary: Any = None,
    ) -> None:
        where = f" on page {page + 1}" if page is not None else ""
        super().__init__(f"Sync failed while {stage}{where}: {message}")
        self.stage = stage
        self.page = page
        self.summary = summary
