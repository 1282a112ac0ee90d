from __future__ import annotations

from typing import Any

import pytest
from opensearchpy.exceptions import ConnectionError, RequestError

from dsindex.modules.search import (
    BulkResult,
    OpenSearchEngine,
    SearchEngine,
    SearchEngineError,
    SearchResponse,
)


class _FakeIndices:
    def __init__(self, client: "_FakeClient") -> None:
        self._client = client

    def exists(self, *, index: str) -> bool:
        self._client.calls.append(("indices.exists", index))
        return index in self._client.indexes

    def create(self, *, index: str, body: dict[str, Any]) -> dict[str, Any]:
        self._client.calls.append(("indices.create", index))
        if self._client.error is not None:
            raise self._client.error
        self._client.indexes[index] = body
        return {"acknowledged": True}

    def delete(self, *, index: str) -> dict[str, Any]:
        self._client.calls.append(("indices.delete", index))
        self._client.indexes.pop(index, None)
        return {"acknowledged": True}


class _FakeClient:
    def __init__(self) -> None:
        self.indexes: dict[str, Any] = {}
        self.calls: list[tuple[str, Any]] = []
        self.error: Exception | None = None
        self.response: dict[str, Any] = {}
        self.indices = _FakeIndices(self)

    def _answer(self, name: str, payload: Any) -> dict[str, Any]:
        self.calls.append((name, payload))
        if self.error is not None:
            raise self.error
        return self.response

    def bulk(self, *, body: list[dict[str, Any]], index: str) -> dict[str, Any]:
        return self._answer("bulk", body)

    def search(self, *, index: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._answer("search", body)

    def count(self, *, index: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._answer("count", body)


@pytest.fixture
def client() -> _FakeClient:
    return _FakeClient()


@pytest.fixture
def engine(client: _FakeClient, stub_logger) -> OpenSearchEngine:
    return OpenSearchEngine(client, logger=stub_logger)  # type: ignore[arg-type]


def test_adapter_satisfies_protocol(engine: OpenSearchEngine) -> None:
    assert isinstance(engine, SearchEngine)


def test_index_lifecycle(engine: OpenSearchEngine, client: _FakeClient) -> None:
    assert engine.index_exists("datasets") is False
    engine.create_index("datasets", {"mappings": {}})
    assert engine.index_exists("datasets") is True
    engine.delete_index("datasets")
    assert engine.index_exists("datasets") is False


def test_bulk_collects_item_failures(
    engine: OpenSearchEngine, client: _FakeClient
) -> None:
    client.response = {
        "errors": True,
        "items": [
            {"update": {"_id": "d1", "status": 200}},
            {
                "update": {
                    "_id": "d2",
                    "status": 400,
                    "error": {
                        "type": "mapper_parsing_exception",
                        "reason": "failed to parse field [vector]",
                    },
                }
            },
        ],
    }

    result = engine.bulk("datasets", [{"delete": {"_id": "d1"}}])

    assert result.item_count == 2
    assert result.errors is True
    assert result.failures == ("update d2: failed to parse field [vector]",)


def test_bulk_errors_flag_without_items_still_fails() -> None:
    result = BulkResult.from_response({"errors": True, "items": []})

    assert result.errors is True


def test_search_parses_hits_and_shard_failures(
    engine: OpenSearchEngine, client: _FakeClient
) -> None:
    client.response = {
        "_shards": {
            "total": 2,
            "failed": 1,
            "failures": [{"reason": {"type": "script_exception"}}],
        },
        "hits": {
            "hits": [
                {"_id": "d1", "_score": 0.91},
                {"_id": "d2", "_score": None},
            ]
        },
    }

    response = engine.search("datasets", {"query": {"match_all": {}}})

    assert response.ids == ("d1", "d2")
    assert response.hits[0].score == pytest.approx(0.91)
    assert response.hits[1].score is None
    assert response.shard_failures == ("script_exception",)


def test_failed_shard_count_without_detail() -> None:
    response = SearchResponse.from_response(
        {"_shards": {"failed": 2}, "hits": {"hits": []}}
    )

    assert response.shard_failures == ("2 shard(s) failed",)


def test_count_returns_integer(
    engine: OpenSearchEngine, client: _FakeClient
) -> None:
    client.response = {"count": 1234}

    assert engine.count("datasets", {"query": {"match_all": {}}}) == 1234


def test_request_error_is_translated(
    engine: OpenSearchEngine, client: _FakeClient
) -> None:
    client.error = RequestError(
        400,
        "resource_already_exists_exception",
        {
            "error": {
                "type": "resource_already_exists_exception",
                "reason": "index [datasets/abc] already exists",
            }
        },
    )

    with pytest.raises(SearchEngineError) as excinfo:
        engine.create_index("datasets", {})

    assert excinfo.value.status_code == 400
    assert excinfo.value.reason == "index [datasets/abc] already exists"
    assert isinstance(excinfo.value.__cause__, RequestError)


def test_connection_error_has_no_status(
    engine: OpenSearchEngine, client: _FakeClient
) -> None:
    client.error = ConnectionError("N/A", "connection refused", None)

    with pytest.raises(SearchEngineError) as excinfo:
        engine.search("datasets", {})

    assert excinfo.value.status_code is None
    assert excinfo.value.reason == "connection refused"
