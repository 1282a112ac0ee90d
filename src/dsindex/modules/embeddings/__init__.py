"""Embedding providers and the :class:`Vectorizer` built on top of them."""

from __future__ import annotations

from .errors import EmbeddingProviderError, ModelUnavailable
from .providers import (
    EmbedRequestOptions,
    EmbeddingMatrix,
    EmbeddingVector,
    EmbeddingsProvider,
    ProviderRegistry,
    create_default_provider_registry,
)
from .vectorizer import Vectorizer, zero_vector, zero_vectors

__all__ = [
    "EmbedRequestOptions",
    "EmbeddingProviderError",
    "EmbeddingMatrix",
    "EmbeddingVector",
    "EmbeddingsProvider",
    "ModelUnavailable",
    "ProviderRegistry",
    "Vectorizer",
    "create_default_provider_registry",
    "zero_vector",
    "zero_vectors",
]
