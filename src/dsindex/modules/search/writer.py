"""Index lifecycle and sequential bulk submission."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from dsindex.core.config import EMBEDDING_DIM
from dsindex.core.logging import Logger, get_logger
from dsindex.modules.search.documents import (
    IndexDocument,
    delete_operations,
    partition,
    upsert_operations,
)
from dsindex.modules.search.engine import SearchEngine
from dsindex.modules.search.errors import (
    BulkDeleteFailed,
    BulkWriteFailed,
    IndexCreationFailed,
    SearchEngineError,
)
from dsindex.modules.search.schema import build_index_body

__all__ = ["IndexWriter"]


@dataclass(slots=True)
class IndexWriter:
    """Own every mutation of one index.

    Batches are submitted one at a time; batch N+1 is never sent before the
    engine has answered batch N.
    """

    engine: SearchEngine
    index: str
    dim: int = EMBEDDING_DIM
    logger: Logger | None = None

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = get_logger(__name__, component="index-writer")
        self.logger = self.logger.bind(index=self.index)

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------
    def ensure_index(self, *, recreate: bool = False) -> bool:
        """Create the index if missing (or dropped because of ``recreate``).

        Returns ``True`` when the index is present afterwards. A failed
        creation is logged and reported as ``False`` instead of raised, so
        later writes surface the problem.
        """

        exists = self.engine.index_exists(self.index)

        if exists and recreate:
            self.logger.info("index-delete", reason="recreate")
            self.engine.delete_index(self.index)
            exists = False

        if exists:
            self.logger.info("index-exists", recreate=False)
            return True

        self.logger.info("index-create", dim=self.dim)
        try:
            self.engine.create_index(self.index, build_index_body(self.dim))
        except SearchEngineError as exc:
            failure = IndexCreationFailed(self.index, exc.reason or str(exc))
            self.logger.error(
                "index-create-failed",
                error=str(failure),
                status_code=exc.status_code,
            )
            return False
        self.logger.info("index-created")
        return True

    # ------------------------------------------------------------------
    # Single batches
    # ------------------------------------------------------------------
    def write_batch(
        self,
        batch: Sequence[IndexDocument],
        *,
        position: int = 0,
        total: int = 1,
    ) -> None:
        """Upsert one batch of documents.

        Raises:
            BulkWriteFailed: On transport errors or any rejected item.
        """

        self._submit(
            upsert_operations(batch, self.index),
            action="write",
            failure=BulkWriteFailed,
            position=position,
            total=total,
        )

    def delete_batch(
        self,
        batch: Sequence[str],
        *,
        position: int = 0,
        total: int = 1,
    ) -> None:
        """Delete one batch of documents by identifier.

        Raises:
            BulkDeleteFailed: On transport errors or any rejected item.
        """

        self._submit(
            delete_operations(batch, self.index),
            action="delete",
            failure=BulkDeleteFailed,
            position=position,
            total=total,
        )

    # ------------------------------------------------------------------
    # Sequences of batches
    # ------------------------------------------------------------------
    def write_documents(
        self,
        documents: Sequence[IndexDocument],
        *,
        batch_size: int,
    ) -> int:
        """Write ``documents`` in order, one batch at a time.

        Returns the number of batches submitted.
        """

        batches = partition(documents, batch_size)
        for position, batch in enumerate(batches):
            self.write_batch(batch, position=position, total=len(batches))
        return len(batches)

    def delete_documents(self, ids: Sequence[str], *, batch_size: int) -> int:
        """Delete ``ids`` in order, one batch at a time.

        An empty ``ids`` performs no engine calls. Returns the number of
        batches submitted.
        """

        if not ids:
            self.logger.info("delete-nothing")
            return 0
        batches = partition(ids, batch_size)
        for position, batch in enumerate(batches):
            self.delete_batch(batch, position=position, total=len(batches))
        return len(batches)

    def _submit(
        self,
        operations: Sequence[Mapping[str, Any]],
        *,
        action: str,
        failure: type[BulkWriteFailed] | type[BulkDeleteFailed],
        position: int,
        total: int,
    ) -> None:
        log = self.logger.bind(batch=position + 1, of=total)
        log.info(f"{action}-batch", operations=len(operations))
        try:
            result = self.engine.bulk(self.index, operations)
        except SearchEngineError as exc:
            reason = exc.reason or str(exc)
            log.error(f"{action}-batch-failed", reason=reason)
            raise failure(position, total, reason) from exc
        if result.errors:
            reason = "; ".join(result.failures[:3])
            log.error(
                f"{action}-batch-failed",
                reason=reason,
                failed_items=len(result.failures),
            )
            raise failure(position, total, reason)
