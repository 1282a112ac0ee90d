"""Reconcile eligible records from the record store into the search index."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Sequence

from dsindex.core.config import SyncSettings
from dsindex.core.logging import Logger, get_logger
from dsindex.modules.embeddings import (
    EmbeddingProviderError,
    ModelUnavailable,
    Vectorizer,
)
from dsindex.modules.records import Record, RecordStore, RecordStoreError
from dsindex.modules.search.documents import build_documents
from dsindex.modules.search.errors import SearchIndexError, SyncFailed
from dsindex.modules.search.writer import IndexWriter

__all__ = ["SyncOptions", "SyncOrchestrator", "SyncState", "SyncSummary"]

_FATAL = (
    EmbeddingProviderError,
    ModelUnavailable,
    RecordStoreError,
    SearchIndexError,
)


class SyncState(StrEnum):
    """Lifecycle of a single sync run."""

    IDLE = "idle"
    ENSURING_INDEX = "ensuring-index"
    POPULATING = "populating"
    DELETING = "deleting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Parameters for one sync run.

    Attributes:
        watermark: Only records updated at or after this instant are written.
        recreate: Drop and recreate the index before populating it.
        ids_to_delete: Document identifiers purged after population.
        portal_ids: Restrict population to these portals; ``None`` or an
            empty sequence means all.
        skip_embedding: Write zero vectors instead of calling the model.
    """

    watermark: datetime
    recreate: bool = False
    ids_to_delete: tuple[str, ...] = field(default_factory=tuple)
    portal_ids: tuple[str, ...] | None = None
    skip_embedding: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids_to_delete", tuple(self.ids_to_delete))
        # An empty portal list is no restriction.
        portals = tuple(self.portal_ids) if self.portal_ids else None
        object.__setattr__(self, "portal_ids", portals)


@dataclass(slots=True)
class SyncSummary:
    """Progress counters accumulated while a run executes."""

    state: SyncState = SyncState.IDLE
    index_ready: bool = False
    total_eligible: int = 0
    pages_planned: int = 0
    pages_processed: int = 0
    documents_written: int = 0
    write_batches: int = 0
    delete_batches: int = 0
    deleted_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(slots=True)
class SyncOrchestrator:
    """Drive ensure-index, populate and delete stages strictly in order.

    The first error in any stage aborts the run with :class:`SyncFailed`;
    pages before the failing one stay applied, later pages are never read.
    """

    store: RecordStore
    vectorizer: Vectorizer
    writer: IndexWriter
    settings: SyncSettings = field(default_factory=SyncSettings)
    logger: Logger | None = None

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = get_logger(__name__, component="sync")

    def run(self, options: SyncOptions) -> SyncSummary:
        summary = SyncSummary()
        log = self.logger.bind(
            watermark=options.watermark.isoformat(),
            portals=list(options.portal_ids) if options.portal_ids else None,
        )
        log.info(
            "sync-start",
            recreate=options.recreate,
            skip_embedding=options.skip_embedding,
            deletes=len(options.ids_to_delete),
        )

        summary.state = SyncState.ENSURING_INDEX
        try:
            summary.index_ready = self.writer.ensure_index(
                recreate=options.recreate
            )
        except _FATAL as exc:
            raise self._fail(summary, log, "ensuring the index", exc) from exc

        summary.state = SyncState.POPULATING
        page: int | None = None
        try:
            if not options.skip_embedding and self.vectorizer.settings.enabled:
                self.vectorizer.load()
            summary.total_eligible = self._count(options)
            summary.pages_planned = math.ceil(
                summary.total_eligible / self.settings.page_size
            )
            log.info(
                "sync-populate",
                total=summary.total_eligible,
                pages=summary.pages_planned,
                page_size=self.settings.page_size,
            )
            for page in range(summary.pages_planned):
                if not self._populate_page(page, options, summary, log):
                    break
        except _FATAL as exc:
            raise self._fail(
                summary, log, "populating", exc, page=page
            ) from exc

        summary.state = SyncState.DELETING
        try:
            summary.delete_batches = self.writer.delete_documents(
                options.ids_to_delete,
                batch_size=self.settings.delete_batch_size,
            )
        except _FATAL as exc:
            raise self._fail(summary, log, "deleting", exc) from exc
        summary.deleted_ids = options.ids_to_delete

        summary.state = SyncState.DONE
        log.info(
            "sync-done",
            pages=summary.pages_processed,
            documents=summary.documents_written,
            deleted=len(summary.deleted_ids),
        )
        return summary

    def _count(self, options: SyncOptions) -> int:
        if options.portal_ids:
            return self.store.count_for_portals(
                options.portal_ids, options.watermark
            )
        return self.store.count_all(options.watermark)

    def _populate_page(
        self,
        page: int,
        options: SyncOptions,
        summary: SyncSummary,
        log: Logger,
    ) -> bool:
        """Process one page; returns ``False`` when the store ran dry."""

        page_log = log.bind(page=page + 1, of=summary.pages_planned)
        records: Sequence[Record] = self.store.find_page(
            self.settings.page_size,
            page * self.settings.page_size,
            options.portal_ids,
            options.watermark,
        )
        if not records:
            page_log.warning("sync-page-empty")
            return False

        page_log.info(
            "sync-page-start",
            records=len(records),
            first=records[0].id,
        )
        vectors = None
        if not options.skip_embedding:
            vectors = self.vectorizer.embed(
                [record.embedding_text for record in records]
            )
        documents = build_documents(records, vectors, dim=self.vectorizer.dim)
        batches = self.writer.write_documents(
            documents,
            batch_size=self.settings.write_batch_size,
        )
        summary.pages_processed += 1
        summary.documents_written += len(documents)
        summary.write_batches += batches
        page_log.info(
            "sync-page-done",
            documents=len(documents),
            batches=batches,
        )
        return True

    def _fail(
        self,
        summary: SyncSummary,
        log: Logger,
        stage: str,
        exc: BaseException,
        *,
        page: int | None = None,
    ) -> SyncFailed:
        summary.state = SyncState.FAILED
        log.error(
            "sync-failed",
            stage=stage,
            page=page + 1 if page is not None else None,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return SyncFailed(stage, str(exc), page=page, summary=summary)
