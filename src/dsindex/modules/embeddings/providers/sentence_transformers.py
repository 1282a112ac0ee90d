"""Local sentence-encoder provider backed by ``sentence-transformers``."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from dsindex.core.logging import Logger
from dsindex.modules.embeddings.errors import (
    EmbeddingProviderConfigurationError,
    EmbeddingProviderDimMismatchError,
)

from . import (
    EmbedRequestOptions,
    EmbeddingMatrix,
    EmbeddingProviderCaps,
    EmbeddingProviderModel,
    EmbeddingsProvider,
    ProviderInitContext,
)

__all__ = [
    "SentenceTransformersProvider",
    "sentence_transformers_provider_factory",
]

_PROVIDER = "sentence-transformers"

ModelLoader = Callable[[str], Any]


def _import_loader() -> ModelLoader:
    try:
        from sentence_transformers import SentenceTransformer
    except ImportError as exc:
        raise EmbeddingProviderConfigurationError(
            (
                "sentence-transformers is not installed; install the "
                "'local-embeddings' extra or switch embeddings.provider."
            ),
            provider=_PROVIDER,
            model="*",
        ) from exc
    return SentenceTransformer


class SentenceTransformersProvider(EmbeddingsProvider):
    """Embed texts with a locally loaded sentence encoder.

    Models are loaded on first use and cached per name for the lifetime of
    the provider, so repeated calls never reload weights.
    """

    def __init__(
        self,
        *,
        logger: Logger,
        config: Mapping[str, object] | None = None,
        loader: ModelLoader | None = None,
    ) -> None:
        self.logger = logger
        self._config = dict(config or {})
        self._loader = loader
        self._models: dict[str, Any] = {}

    def describe_model(self, model: str) -> EmbeddingProviderModel:
        handle = self._model(model)
        dim = handle.get_sentence_embedding_dimension()
        return EmbeddingProviderModel(
            provider=_PROVIDER,
            name=model,
            dim=int(dim) if dim else None,
        )

    def capabilities(
        self,
        *,
        model: str | None = None,
    ) -> EmbeddingProviderCaps:
        return EmbeddingProviderCaps(max_batch_size=256)

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        model: str,
        options: EmbedRequestOptions,
    ) -> EmbeddingMatrix:
        if not texts:
            return ()

        handle = self._model(model)
        encoded = handle.encode(
            list(texts),
            batch_size=options.max_batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        vectors = tuple(
            tuple(float(value) for value in row) for row in encoded.tolist()
        )

        expected = options.dimensions
        for vector in vectors:
            if expected is not None and len(vector) != expected:
                raise EmbeddingProviderDimMismatchError(
                    "Local encoder produced vectors of unexpected size.",
                    provider=_PROVIDER,
                    model=model,
                    expected=expected,
                    actual=len(vector),
                )
        return vectors

    def _model(self, name: str) -> Any:
        cached = self._models.get(name)
        if cached is not None:
            return cached

        loader = self._loader or _import_loader()
        self.logger.info("local-model-loading", model=name)
        try:
            handle = loader(name)
        except (OSError, ValueError) as exc:
            raise EmbeddingProviderConfigurationError(
                f"Failed to load sentence encoder {name!r}: {exc}",
                provider=_PROVIDER,
                model=name,
            ) from exc
        self.logger.info("local-model-loaded", model=name)
        self._models[name] = handle
        return handle


def sentence_transformers_provider_factory(
    context: ProviderInitContext,
) -> SentenceTransformersProvider:
    """Factory registered with the provider registry."""

    return SentenceTransformersProvider(
        logger=context.logger,
        config=context.config,
    )
