"""Pure transformations from records to engine-ready write batches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, TypeVar

from dsindex.core.config import EMBEDDING_DIM
from dsindex.modules.embeddings import EmbeddingVector, zero_vector
from dsindex.modules.records import Record
from dsindex.modules.search.errors import LengthMismatch

__all__ = [
    "IndexDocument",
    "build_documents",
    "delete_operations",
    "partition",
    "upsert_operations",
]

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class IndexDocument:
    """Projection of a :class:`Record` plus its vector into the index shape.

    ``id`` is always the record id so repeated writes upsert in place.
    """

    id: str
    title: str
    description: str
    portal: str
    department: str | None
    categories: tuple[str, ...]
    columns: tuple[str, ...]
    is_test: bool
    vector: EmbeddingVector

    @classmethod
    def from_record(
        cls,
        record: Record,
        vector: EmbeddingVector,
    ) -> "IndexDocument":
        return cls(
            id=record.id,
            title=record.name,
            description=record.description,
            portal=record.portal_id,
            department=record.department,
            categories=record.categories,
            columns=record.column_fields,
            is_test=record.is_test,
            vector=tuple(float(value) for value in vector),
        )

    def to_source(self) -> dict[str, Any]:
        """Return the stored field payload keyed by index field names."""

        return {
            "title": self.title,
            "description": self.description,
            "vector": list(self.vector),
            "portal": self.portal,
            "department": self.department,
            "categories": list(self.categories),
            "columns": list(self.columns),
            "isTest": self.is_test,
        }


def build_documents(
    records: Sequence[Record],
    vectors: Sequence[EmbeddingVector] | None = None,
    *,
    dim: int = EMBEDDING_DIM,
) -> tuple[IndexDocument, ...]:
    """Pair ``records`` with ``vectors`` by position.

    Without ``vectors`` every document carries a zero vector of ``dim``.

    Raises:
        LengthMismatch: If ``vectors`` is given with a different length.
    """

    if vectors is None:
        placeholder = zero_vector(dim)
        return tuple(
            IndexDocument.from_record(record, placeholder)
            for record in records
        )
    if len(vectors) != len(records):
        raise LengthMismatch(records=len(records), vectors=len(vectors))
    return tuple(
        IndexDocument.from_record(record, vector)
        for record, vector in zip(records, vectors)
    )


def partition(items: Sequence[T], max_batch_items: int) -> list[tuple[T, ...]]:
    """Split ``items`` into consecutive chunks of ``max_batch_items``.

    Example:
        >>> partition([1, 2, 3, 4, 5], 2)
        [(1, 2), (3, 4), (5,)]
    """

    if max_batch_items < 1:
        raise ValueError("max_batch_items must be >= 1")
    return [
        tuple(items[start : start + max_batch_items])
        for start in range(0, len(items), max_batch_items)
    ]


def upsert_operations(
    documents: Sequence[IndexDocument],
    index: str,
) -> list[dict[str, Any]]:
    """Return bulk lines that update each document, creating it if absent."""

    lines: list[dict[str, Any]] = []
    for document in documents:
        lines.append({"update": {"_index": index, "_id": document.id}})
        lines.append({"doc": document.to_source(), "doc_as_upsert": True})
    return lines


def delete_operations(ids: Sequence[str], index: str) -> list[dict[str, Any]]:
    """Return bulk lines deleting each identifier in ``ids``."""

    return [{"delete": {"_index": index, "_id": doc_id}} for doc_id in ids]
