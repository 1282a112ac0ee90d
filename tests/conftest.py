"""Shared pytest fixtures: in-memory engine, record store and providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

import pytest

from dsindex.core.config import EmbeddingSettings, SyncSettings
from dsindex.modules.embeddings import (
    EmbedRequestOptions,
    EmbeddingMatrix,
    ProviderRegistry,
    Vectorizer,
)
from dsindex.modules.embeddings.providers import (
    EmbeddingProviderCaps,
    EmbeddingProviderModel,
)
from dsindex.modules.records import Record
from dsindex.modules.records.models import ensure_utc
from dsindex.modules.search import (
    BulkResult,
    SearchEngineError,
    SearchHit,
    SearchResponse,
)

EPOCH = datetime(2020, 1, 1, tzinfo=timezone.utc)


class StubLogger:
    """Collect structured events instead of emitting them."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **kwargs: Any) -> None:
        self.events.append((level, {"event": event, **kwargs}))

    def debug(self, event: str, **kwargs: Any) -> None:
        self._record("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._record("error", event, **kwargs)

    def bind(self, **kwargs: Any) -> "StubLogger":
        return self

    def names(self, level: str | None = None) -> list[str]:
        return [
            payload["event"]
            for current, payload in self.events
            if level is None or current == level
        ]


def make_record(
    record_id: str,
    *,
    name: str | None = None,
    description: str = "",
    portal: str = "p1",
    updated: datetime = EPOCH,
    **extra: Any,
) -> Record:
    return Record(
        id=record_id,
        name=name if name is not None else f"Dataset {record_id}",
        description=description,
        portal_id=portal,
        metadata_updated_at=updated,
        **extra,
    )


@dataclass
class FakeEngine:
    """In-memory :class:`SearchEngine` that records every call in order."""

    exists: bool = False
    hits: Sequence[SearchHit] = ()
    shard_failures: tuple[str, ...] = ()
    total: int = 0
    fail_bulk_at: set[int] = field(default_factory=set)
    reject_bulk_at: set[int] = field(default_factory=set)
    fail_create: bool = False
    fail_search: bool = False
    fail_count: bool = False
    calls: list[tuple[str, Any]] = field(default_factory=list)
    bulks: list[list[Mapping[str, Any]]] = field(default_factory=list)

    def index_exists(self, name: str) -> bool:
        self.calls.append(("index_exists", name))
        return self.exists

    def create_index(self, name: str, body: Mapping[str, Any]) -> None:
        self.calls.append(("create_index", name))
        if self.fail_create:
            raise SearchEngineError(
                "create failed",
                status_code=400,
                reason="resource_already_exists_exception",
            )
        self.exists = True
        self.created_body = body

    def delete_index(self, name: str) -> None:
        self.calls.append(("delete_index", name))
        self.exists = False

    def bulk(
        self,
        name: str,
        operations: Sequence[Mapping[str, Any]],
    ) -> BulkResult:
        position = len(self.bulks)
        self.calls.append(("bulk", len(operations)))
        self.bulks.append(list(operations))
        if position in self.fail_bulk_at:
            raise SearchEngineError("transport down", reason="timeout")
        if position in self.reject_bulk_at:
            return BulkResult(item_count=1, failures=("update x: mapping",))
        return BulkResult(item_count=len(operations))

    def search(self, name: str, body: Mapping[str, Any]) -> SearchResponse:
        self.calls.append(("search", body))
        if self.fail_search:
            raise SearchEngineError(
                "search failed",
                status_code=500,
                reason="script_exception",
            )
        return SearchResponse(
            hits=tuple(self.hits),
            shard_failures=self.shard_failures,
        )

    def count(self, name: str, body: Mapping[str, Any]) -> int:
        self.calls.append(("count", body))
        if self.fail_count:
            raise SearchEngineError("count failed", status_code=503)
        return self.total

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeRecordStore:
    """List-backed :class:`RecordStore` ordered by id."""

    def __init__(self, records: Sequence[Record] = ()) -> None:
        self.records = sorted(records, key=lambda record: record.id)
        self.page_calls: list[tuple[int, int]] = []
        self.id_lookups: list[tuple[str, ...]] = []

    def _eligible(
        self,
        portal_ids: Sequence[str] | None,
        watermark: datetime,
    ) -> list[Record]:
        threshold = ensure_utc(watermark)
        return [
            record
            for record in self.records
            if record.metadata_updated_at >= threshold
            and (portal_ids is None or record.portal_id in portal_ids)
        ]

    def count_all(self, watermark: datetime) -> int:
        return len(self._eligible(None, watermark))

    def count_for_portals(
        self,
        portal_ids: Sequence[str],
        watermark: datetime,
    ) -> int:
        return len(self._eligible(portal_ids, watermark))

    def find_page(
        self,
        page_size: int,
        offset: int,
        portal_ids: Sequence[str] | None,
        watermark: datetime,
    ) -> Sequence[Record]:
        self.page_calls.append((page_size, offset))
        eligible = self._eligible(portal_ids, watermark)
        return tuple(eligible[offset : offset + page_size])

    def find_by_ids(self, ids: Sequence[str]) -> Sequence[Record]:
        self.id_lookups.append(tuple(ids))
        wanted = set(ids)
        # Deliberately not in request order.
        return tuple(
            record for record in reversed(self.records) if record.id in wanted
        )


class StubProvider:
    """Embeddings provider returning deterministic vectors."""

    def __init__(self, dim: int = 512) -> None:
        self.dim = dim
        self.calls: list[tuple[str, ...]] = []
        self.described: list[str] = []

    def describe_model(self, model: str) -> EmbeddingProviderModel:
        self.described.append(model)
        return EmbeddingProviderModel(provider="stub", name=model, dim=self.dim)

    def capabilities(
        self,
        *,
        model: str | None = None,
    ) -> EmbeddingProviderCaps:
        return EmbeddingProviderCaps(max_batch_size=1_000)

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        model: str,
        options: EmbedRequestOptions,
    ) -> EmbeddingMatrix:
        self.calls.append(tuple(texts))
        dim = options.dimensions or self.dim
        return tuple(
            tuple(float(index + 1) for _ in range(dim))
            for index, _ in enumerate(texts)
        )


@pytest.fixture
def stub_logger() -> StubLogger:
    return StubLogger()


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def provider_registry(stub_provider: StubProvider) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("stub", lambda context: stub_provider)
    return registry


@pytest.fixture
def make_vectorizer(
    provider_registry: ProviderRegistry,
    stub_logger: StubLogger,
) -> Callable[..., Vectorizer]:
    def _make(**overrides: Any) -> Vectorizer:
        settings = EmbeddingSettings.model_construct(
            **{
                "enabled": True,
                "provider": "stub",
                "model": "stub-model",
                "dim": 512,
                "batch_size": 64,
                **overrides,
            }
        )
        return Vectorizer(
            providers=provider_registry,
            settings=settings,
            logger=stub_logger,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings(
        page_size=500,
        write_batch_size=100,
        delete_batch_size=100,
    )


@pytest.fixture(name="make_record")
def make_record_fixture() -> Callable[..., Record]:
    return make_record


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_store() -> Callable[[Sequence[Record]], FakeRecordStore]:
    return FakeRecordStore
