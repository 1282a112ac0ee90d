"""Turn batches of text into fixed-length embedding vectors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from dsindex.core.config import EmbeddingSettings
from dsindex.core.logging import Logger, get_logger
from dsindex.modules.embeddings.errors import (
    EmbeddingProviderConfigurationError,
    EmbeddingProviderRequestError,
    ModelUnavailable,
)
from dsindex.modules.embeddings.providers import (
    EmbedRequestOptions,
    EmbeddingMatrix,
    EmbeddingVector,
    EmbeddingsProvider,
    ProviderRegistry,
    ProviderRegistryError,
)

__all__ = ["Vectorizer", "zero_vector", "zero_vectors"]


def zero_vector(dim: int) -> EmbeddingVector:
    """Return the neutral placeholder vector of length ``dim``."""

    return (0.0,) * dim


def zero_vectors(count: int, dim: int) -> EmbeddingMatrix:
    """Return ``count`` placeholder vectors."""

    return tuple(zero_vector(dim) for _ in range(count))


@dataclass(slots=True)
class Vectorizer:
    """Embed texts with a provider that is created once and then reused.

    When ``settings.enabled`` is false no provider is ever created and every
    text maps to a zero vector of ``settings.dim`` entries.
    """

    providers: ProviderRegistry
    settings: EmbeddingSettings
    logger: Logger | None = None
    _provider: EmbeddingsProvider | None = field(
        default=None,
        init=False,
        repr=False,
    )

    def __post_init__(self) -> None:
        if self.logger is None:
            self.logger = get_logger(__name__, component="vectorizer")

    @property
    def dim(self) -> int:
        return self.settings.dim

    @property
    def loaded(self) -> bool:
        return self._provider is not None

    def load(self) -> EmbeddingsProvider:
        """Create the provider and load its model if not done already.

        Raises:
            ModelUnavailable: If the provider is unknown or cannot load.
        """

        if self._provider is not None:
            return self._provider

        key = self.settings.provider
        model = self.settings.model
        self.logger.info("embedding-model-load", provider=key, model=model)
        try:
            provider = self.providers.create(
                key,
                logger=self.logger.bind(component="embedding-provider"),
            )
            described = provider.describe_model(model)
        except (
            ProviderRegistryError,
            EmbeddingProviderConfigurationError,
        ) as exc:
            self.logger.error(
                "embedding-model-unavailable",
                provider=key,
                model=model,
                error=str(exc),
            )
            raise ModelUnavailable(
                f"Embedding model {key}:{model} is unavailable: {exc}",
                provider=key,
                model=model,
            ) from exc

        self.logger.info(
            "embedding-model-ready",
            model=described.key,
            native_dim=described.dim,
            dim=self.settings.dim,
        )
        self._provider = provider
        return provider

    def embed(self, texts: Sequence[str]) -> EmbeddingMatrix:
        """Return one vector per entry in ``texts``, in the same order."""

        if not texts:
            return ()
        if not self.settings.enabled:
            return zero_vectors(len(texts), self.settings.dim)

        provider = self.load()
        vectors = provider.embed_texts(
            texts,
            model=self.settings.model,
            options=EmbedRequestOptions(
                max_batch_size=self.settings.batch_size,
                dimensions=self.settings.dim,
            ),
        )
        if len(vectors) != len(texts):
            raise EmbeddingProviderRequestError(
                (
                    f"Provider returned {len(vectors)} vectors for "
                    f"{len(texts)} inputs."
                ),
                provider=self.settings.provider,
                model=self.settings.model,
            )
        return vectors
