"""Rank datasets by cosine similarity to a free-text description."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from dsindex.core.logging import Logger, get_logger
from dsindex.modules.embeddings import (
    EmbeddingProviderError,
    EmbeddingVector,
    Vectorizer,
)
from dsindex.modules.records import Record, RecordStore, RecordStoreError
from dsindex.modules.search.engine import SearchEngine, SearchHit
from dsindex.modules.search.errors import SearchEngineError

__all__ = [
    "COSINE_SCRIPT",
    "DEFAULT_RESULT_CAP",
    "ScoredRecord",
    "SimilaritySearch",
    "build_similarity_query",
]

COSINE_SCRIPT = (
    "(cosineSimilarity(params.query_vector, doc['vector']) + 1.0)/2.0"
)
DEFAULT_RESULT_CAP = 50


@dataclass(frozen=True, slots=True)
class ScoredRecord:
    """A resolved record and its normalized similarity score in ``[0, 1]``."""

    record: Record
    score: float | None


def build_similarity_query(
    vector: EmbeddingVector,
    *,
    portal: str | None = None,
    size: int = DEFAULT_RESULT_CAP,
) -> dict[str, Any]:
    """Return a ``script_score`` body ranking documents by ``vector``."""

    scope: dict[str, Any] = (
        {"match": {"portal": portal}} if portal else {"match_all": {}}
    )
    return {
        "size": size,
        "query": {
            "script_score": {
                "query": scope,
                "script": {
                    "source": COSINE_SCRIPT,
                    "params": {"query_vector": list(vector)},
                },
            }
        },
    }


class SimilaritySearch:
    """Best-effort similarity ranking.

    Engine failures, including partial shard failures, are logged and
    reported as an empty result rather than raised.
    """

    def __init__(
        self,
        engine: SearchEngine,
        index: str,
        vectorizer: Vectorizer,
        store: RecordStore,
        *,
        result_cap: int = DEFAULT_RESULT_CAP,
        logger: Logger | None = None,
    ) -> None:
        if result_cap < 1:
            raise ValueError("result_cap must be >= 1")
        self._engine = engine
        self._index = index
        self._vectorizer = vectorizer
        self._store = store
        self.result_cap = result_cap
        self.logger = logger or get_logger(__name__, component="similarity")

    def find_similar(
        self,
        text: str,
        portal: str | None = None,
    ) -> list[ScoredRecord]:
        """Return records ranked by similarity to ``text``, best first.

        Provider request failures are logged and give an empty result.

        Raises:
            ModelUnavailable: If the embedding model cannot be loaded.
        """

        log = self.logger.bind(portal=portal, cap=self.result_cap)
        try:
            (vector,) = self._vectorizer.embed([text])
        except EmbeddingProviderError as exc:
            log.error("similar-embed-failed", error=str(exc))
            return []

        body = build_similarity_query(
            vector,
            portal=portal,
            size=self.result_cap,
        )
        try:
            response = self._engine.search(self._index, body)
        except SearchEngineError as exc:
            log.error(
                "similar-query-failed",
                error=str(exc),
                reason=exc.reason,
                status_code=exc.status_code,
            )
            return []
        if response.shard_failures:
            log.error(
                "similar-query-failed",
                reason=response.shard_failures[0],
                failed_shards=len(response.shard_failures),
            )
            return []
        if not response.hits:
            log.info("similar-query-done", results=0)
            return []

        try:
            records = self._store.find_by_ids(list(response.ids))
        except RecordStoreError as exc:
            log.error("similar-resolve-failed", error=str(exc))
            return []

        results = _rank(response.hits, records)
        if len(results) != len(response.hits):
            log.warning(
                "similar-unresolved-ids",
                hits=len(response.hits),
                resolved=len(results),
            )
        log.info("similar-query-done", results=len(results))
        return results

    def find_similar_to_record(
        self,
        record: Record,
        portal: str | None = None,
    ) -> list[ScoredRecord]:
        """Rank datasets by similarity to ``record``'s own text."""

        return self.find_similar(record.embedding_text, portal)


def _rank(
    hits: Sequence[SearchHit],
    records: Sequence[Record],
) -> list[ScoredRecord]:
    by_id = {record.id: record for record in records}
    ranked: list[ScoredRecord] = []
    for hit in hits:
        record = by_id.get(hit.id)
        if record is not None:
            ranked.append(ScoredRecord(record=record, score=hit.score))
    return ranked
