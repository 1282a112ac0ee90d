"""Search engine boundary and the OpenSearch adapter implementing it."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    Iterator,
    Mapping,
    Protocol,
    Sequence,
    runtime_checkable,
)

from opensearchpy import OpenSearch
from opensearchpy.exceptions import OpenSearchException, TransportError

from dsindex.core.config import SearchSettings
from dsindex.core.logging import Logger, get_logger
from dsindex.modules.search.errors import SearchEngineError

__all__ = [
    "BulkResult",
    "OpenSearchEngine",
    "SearchEngine",
    "SearchHit",
    "SearchResponse",
]


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Outcome of one bulk request."""

    item_count: int
    failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def errors(self) -> bool:
        return bool(self.failures)

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "BulkResult":
        items = response.get("items") or []
        failures: list[str] = []
        for item in items:
            for action, outcome in item.items():
                error = outcome.get("error")
                if error is None:
                    continue
                if isinstance(error, Mapping):
                    reason = error.get("reason") or error.get("type")
                else:
                    reason = str(error)
                failures.append(f"{action} {outcome.get('_id')}: {reason}")
        if response.get("errors") and not failures:
            failures.append("engine reported errors without item detail")
        return cls(item_count=len(items), failures=tuple(failures))


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A ranked hit: document identifier and engine score."""

    id: str
    score: float | None


@dataclass(frozen=True, slots=True)
class SearchResponse:
    """Ranked hits plus any per-shard failure reasons."""

    hits: tuple[SearchHit, ...]
    shard_failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(hit.id for hit in self.hits)

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "SearchResponse":
        raw_hits = (response.get("hits") or {}).get("hits") or []
        hits = tuple(
            SearchHit(
                id=str(hit["_id"]),
                score=(
                    float(hit["_score"])
                    if hit.get("_score") is not None
                    else None
                ),
            )
            for hit in raw_hits
        )
        shards = response.get("_shards") or {}
        reasons: list[str] = []
        for failure in shards.get("failures") or []:
            reason = failure.get("reason")
            if isinstance(reason, Mapping):
                reason = reason.get("reason") or reason.get("type")
            reasons.append(str(reason))
        if shards.get("failed") and not reasons:
            reasons.append(f"{shards['failed']} shard(s) failed")
        return cls(hits=hits, shard_failures=tuple(reasons))


@runtime_checkable
class SearchEngine(Protocol):
    """Operations required from the search engine runtime."""

    def index_exists(self, name: str) -> bool:
        """Return ``True`` when index ``name`` exists."""

    def create_index(self, name: str, body: Mapping[str, Any]) -> None:
        """Create index ``name`` with settings/mappings ``body``."""

    def delete_index(self, name: str) -> None:
        """Delete index ``name``."""

    def bulk(
        self,
        name: str,
        operations: Sequence[Mapping[str, Any]],
    ) -> BulkResult:
        """Submit newline-delimited bulk ``operations`` against ``name``."""

    def search(self, name: str, body: Mapping[str, Any]) -> SearchResponse:
        """Run a ranked query."""

    def count(self, name: str, body: Mapping[str, Any]) -> int:
        """Return the exact number of documents matching ``body``."""


def _status_of(exc: OpenSearchException) -> int | None:
    if isinstance(exc, TransportError):
        status = exc.status_code
        return status if isinstance(status, int) else None
    return None


def _reason_of(exc: OpenSearchException) -> str:
    if isinstance(exc, TransportError):
        info = exc.info
        if isinstance(info, Mapping):
            error = info.get("error")
            if isinstance(error, Mapping):
                shards = error.get("failed_shards") or []
                if shards:
                    reason = shards[0].get("reason")
                    if isinstance(reason, Mapping):
                        return str(reason.get("reason") or reason)
                    return str(reason)
                return str(error.get("reason") or error.get("type") or error)
        return str(exc.error)
    return str(exc) or exc.__class__.__name__


class OpenSearchEngine(SearchEngine):
    """Adapter translating :class:`SearchEngine` calls to ``opensearch-py``."""

    def __init__(
        self,
        client: OpenSearch,
        *,
        logger: Logger | None = None,
    ) -> None:
        self._client = client
        self.logger = logger or get_logger(__name__, component="opensearch")

    @classmethod
    def from_settings(
        cls,
        settings: SearchSettings,
        *,
        logger: Logger | None = None,
    ) -> "OpenSearchEngine":
        auth = None
        if settings.username:
            auth = (settings.username, settings.password or "")
        client = OpenSearch(
            hosts=list(settings.hosts),
            http_auth=auth,
            verify_certs=settings.verify_certs,
            timeout=settings.timeout,
        )
        return cls(client, logger=logger)

    @contextmanager
    def _translate(self, operation: str, index: str) -> Iterator[None]:
        try:
            yield
        except OpenSearchException as exc:
            status = _status_of(exc)
            reason = _reason_of(exc)
            self.logger.debug(
                "opensearch-request-failed",
                operation=operation,
                index=index,
                status_code=status,
                reason=reason,
            )
            raise SearchEngineError(
                f"OpenSearch {operation} on {index!r} failed: {reason}",
                status_code=status,
                reason=reason,
            ) from exc

    def index_exists(self, name: str) -> bool:
        with self._translate("indices.exists", name):
            return bool(self._client.indices.exists(index=name))

    def create_index(self, name: str, body: Mapping[str, Any]) -> None:
        with self._translate("indices.create", name):
            self._client.indices.create(index=name, body=dict(body))

    def delete_index(self, name: str) -> None:
        with self._translate("indices.delete", name):
            self._client.indices.delete(index=name)

    def bulk(
        self,
        name: str,
        operations: Sequence[Mapping[str, Any]],
    ) -> BulkResult:
        with self._translate("bulk", name):
            response = self._client.bulk(
                body=[dict(line) for line in operations],
                index=name,
            )
        return BulkResult.from_response(response)

    def search(self, name: str, body: Mapping[str, Any]) -> SearchResponse:
        with self._translate("search", name):
            response = self._client.search(index=name, body=dict(body))
        return SearchResponse.from_response(response)

    def count(self, name: str, body: Mapping[str, Any]) -> int:
        with self._translate("count", name):
            response = self._client.count(index=name, body=dict(body))
        return int(response["count"])
