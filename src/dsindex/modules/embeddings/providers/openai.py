"""OpenAI embeddings provider.

Only the ``text-embedding-3-*`` family can be asked for 512-dim vectors
directly (``dimensions=512``); ``text-embedding-ada-002`` is fixed at 1536
and is rejected unless the index is configured for that width.
"""

from __future__ import annotations

import os
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Sequence

import httpx
import tiktoken
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    OpenAI,
    RateLimitError,
)

from dsindex.core.logging import Logger
from dsindex.modules.embeddings.errors import (
    EmbeddingProviderConfigurationError,
    EmbeddingProviderDimMismatchError,
    EmbeddingProviderError,
    EmbeddingProviderInputTooLargeError,
    EmbeddingProviderRateLimitError,
    EmbeddingProviderRequestError,
    EmbeddingProviderRetryExceededError,
    EmbeddingProviderRetryableError,
)

from . import (
    EmbedRequestOptions,
    EmbeddingMatrix,
    EmbeddingProviderCaps,
    EmbeddingProviderModel,
    EmbeddingsProvider,
    ProviderInitContext,
)

__all__ = ["OpenAIEmbeddingsProvider", "openai_provider_factory"]

PROVIDER = "openai"
REQUEST_TOKEN_LIMIT = 8_191
REQUEST_BATCH_LIMIT = 128
MAX_ATTEMPTS = 5

# Per-input overhead the API adds on top of the encoded text.
_TOKEN_OVERHEAD = 8


@dataclass(frozen=True, slots=True)
class _Model:
    native_dim: int
    shrinkable: bool


_MODELS: Mapping[str, _Model] = {
    "text-embedding-3-small": _Model(native_dim=1_536, shrinkable=True),
    "text-embedding-3-large": _Model(native_dim=3_072, shrinkable=True),
    "text-embedding-ada-002": _Model(native_dim=1_536, shrinkable=False),
}

_RETRYABLE = (
    RateLimitError,
    APITimeoutError,
    APIConnectionError,
    httpx.TimeoutException,
    httpx.NetworkError,
)


def _timeout_from(config: Mapping[str, object]) -> float:
    raw = os.environ.get("OPENAI_TIMEOUT_SECONDS", config.get("timeout", 30.0))
    try:
        timeout = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid OpenAI timeout: {raw!r}") from exc
    if timeout <= 0:
        raise ValueError("OpenAI timeout must be positive")
    return timeout


def _backoff(attempt: int) -> float:
    """Exponential delay starting at 0.5s, capped at 8s, with +/-20% jitter."""

    delay = min(8.0, 0.5 * 2 ** (attempt - 1))
    return round(delay * random.uniform(0.8, 1.2), 2)


def _status_of(exc: Exception) -> int | None:
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, _RETRYABLE):
        return True
    if not isinstance(exc, APIStatusError):
        return False
    status = _status_of(exc)
    return status is not None and status >= 500


class OpenAIEmbeddingsProvider(EmbeddingsProvider):
    """Embed dataset texts through the OpenAI embeddings endpoint."""

    def __init__(
        self,
        *,
        logger: Logger,
        config: Mapping[str, object] | None = None,
        client: OpenAI | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.logger = logger
        self._config = dict(config or {})
        self._sleep = sleep
        self.stats = {"requests": 0, "retries": 0, "failures": 0}
        self._client = client or self._connect()

    def _connect(self) -> OpenAI:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise EmbeddingProviderConfigurationError(
                "OPENAI_API_KEY must be set to use the OpenAI provider.",
                provider=PROVIDER,
                model="*",
            )
        return OpenAI(
            api_key=api_key,
            base_url=os.environ.get("OPENAI_BASE_URL"),
            timeout=_timeout_from(self._config),
        )

    def describe_model(self, model: str) -> EmbeddingProviderModel:
        known = _MODELS.get(model.strip())
        return EmbeddingProviderModel(
            provider=PROVIDER,
            name=model,
            dim=known.native_dim if known else None,
        )

    def capabilities(
        self,
        *,
        model: str | None = None,
    ) -> EmbeddingProviderCaps:
        return EmbeddingProviderCaps(
            max_batch_size=REQUEST_BATCH_LIMIT,
            max_request_tokens=REQUEST_TOKEN_LIMIT,
        )

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        model: str,
        options: EmbedRequestOptions,
    ) -> EmbeddingMatrix:
        if not texts:
            return ()

        model = model.strip()
        width = self._output_width(model, options.dimensions)
        # The endpoint rejects empty strings.
        cleaned = [" ".join(text.split()) or " " for text in texts]
        per_request = min(options.max_batch_size, REQUEST_BATCH_LIMIT)

        # Planned up front so an oversized text fails before any request.
        batches = list(self._requests(cleaned, model=model, limit=per_request))

        vectors: list[tuple[float, ...]] = []
        for batch in batches:
            for raw in self._embed_batch(batch, model, options.dimensions):
                if width is not None and len(raw) != width:
                    raise EmbeddingProviderDimMismatchError(
                        f"OpenAI returned {len(raw)}-dim vectors, "
                        f"expected {width}.",
                        provider=PROVIDER,
                        model=model,
                        expected=width,
                        actual=len(raw),
                    )
                vectors.append(tuple(float(value) for value in raw))
        return tuple(vectors)

    @staticmethod
    def _output_width(model: str, requested: int | None) -> int | None:
        known = _MODELS.get(model)
        if known is None:
            return requested
        if requested is None:
            return known.native_dim
        if not known.shrinkable and requested != known.native_dim:
            raise EmbeddingProviderConfigurationError(
                f"Model {model!r} only produces {known.native_dim}-dim "
                f"vectors; {requested} was requested.",
                provider=PROVIDER,
                model=model,
            )
        return requested

    def _count_tokens(self, *, model: str, text: str) -> int:
        try:
            encoding = tiktoken.encoding_for_model(model)
        except KeyError:
            encoding = tiktoken.get_encoding("cl100k_base")
        return _TOKEN_OVERHEAD + len(encoding.encode(text))

    def _requests(
        self,
        texts: Sequence[str],
        *,
        model: str,
        limit: int,
    ) -> Iterator[tuple[str, ...]]:
        """Group ``texts`` in order under the count and token ceilings."""

        batch: list[str] = []
        budget = 0
        for text in texts:
            tokens = self._count_tokens(model=model, text=text)
            if tokens > REQUEST_TOKEN_LIMIT:
                raise EmbeddingProviderInputTooLargeError(
                    f"Text needs {tokens} tokens; OpenAI accepts "
                    f"{REQUEST_TOKEN_LIMIT} per request.",
                    provider=PROVIDER,
                    model=model,
                    token_count=tokens,
                    limit=REQUEST_TOKEN_LIMIT,
                )
            if batch and (
                len(batch) >= limit or budget + tokens > REQUEST_TOKEN_LIMIT
            ):
                yield tuple(batch)
                batch, budget = [], 0
            batch.append(text)
            budget += tokens
        if batch:
            yield tuple(batch)

    def _embed_batch(
        self,
        batch: Sequence[str],
        model: str,
        dimensions: int | None,
    ) -> list[list[float]]:
        extra: dict[str, object] = {}
        known = _MODELS.get(model)
        if dimensions is not None and known is not None and known.shrinkable:
            extra["dimensions"] = dimensions

        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._client.embeddings.create(
                    model=model,
                    input=list(batch),
                    **extra,
                )
            except Exception as exc:
                if attempt == MAX_ATTEMPTS or not _is_retryable(exc):
                    self.stats["failures"] += 1
                    raise self._as_provider_error(exc, model, attempt) from exc
                delay = _backoff(attempt)
                self.stats["retries"] += 1
                self.logger.warning(
                    "openai-embed-retry",
                    model=model,
                    attempt=attempt,
                    delay=delay,
                    status_code=_status_of(exc),
                    error_type=exc.__class__.__name__,
                )
                self._sleep(delay)
                continue

            self.stats["requests"] += 1
            self.logger.debug(
                "openai-embed-request",
                model=model,
                texts=len(batch),
                attempt=attempt,
            )
            return [list(item.embedding) for item in response.data]

    @staticmethod
    def _as_provider_error(
        exc: Exception,
        model: str,
        attempts: int,
    ) -> EmbeddingProviderError:
        message = str(exc) or exc.__class__.__name__
        details = {
            "provider": PROVIDER,
            "model": model,
            "status_code": _status_of(exc),
            "request_id": getattr(exc, "request_id", None),
        }
        if isinstance(exc, RateLimitError):
            return EmbeddingProviderRateLimitError(message, **details)
        if _is_retryable(exc):
            return EmbeddingProviderRetryExceededError(
                f"Gave up after {attempts} attempts: {message}",
                attempts=attempts,
                **details,
            )
        if isinstance(exc, httpx.HTTPError):
            return EmbeddingProviderRetryableError(message, **details)
        return EmbeddingProviderRequestError(message, **details)


def openai_provider_factory(
    context: ProviderInitContext,
) -> OpenAIEmbeddingsProvider:
    return OpenAIEmbeddingsProvider(
        logger=context.logger,
        config=context.config,
    )
