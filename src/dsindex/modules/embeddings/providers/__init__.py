"""Embedding provider contract and the registry the Vectorizer draws from.

Providers turn dataset text into vectors. The :class:`Vectorizer` asks the
registry for one provider, by name, the first time it needs to embed and
keeps that instance for the rest of the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import import_module
from types import MappingProxyType
from typing import Callable, Mapping, Protocol, Sequence, runtime_checkable

from dsindex.core.logging import Logger

__all__ = [
    "BUILTIN_PROVIDERS",
    "EmbedRequestOptions",
    "EmbeddingMatrix",
    "EmbeddingProviderCaps",
    "EmbeddingProviderModel",
    "EmbeddingVector",
    "EmbeddingsProvider",
    "ProviderFactory",
    "ProviderInitContext",
    "ProviderRegistry",
    "ProviderRegistryError",
    "UnknownProviderError",
    "create_default_provider_registry",
]

EmbeddingVector = tuple[float, ...]
EmbeddingMatrix = tuple[EmbeddingVector, ...]


def _require_positive(name: str, value: int | None) -> None:
    if value is not None and value < 1:
        raise ValueError(f"{name} must be >= 1")


@dataclass(frozen=True, slots=True)
class EmbedRequestOptions:
    """Per-call limits: texts per request and requested vector length."""

    max_batch_size: int
    dimensions: int | None = None

    def __post_init__(self) -> None:
        _require_positive("max_batch_size", self.max_batch_size)
        _require_positive("dimensions", self.dimensions)


@dataclass(frozen=True, slots=True)
class EmbeddingProviderCaps:
    """What a provider can take in one request."""

    max_batch_size: int
    max_request_tokens: int | None = None

    def __post_init__(self) -> None:
        _require_positive("max_batch_size", self.max_batch_size)
        _require_positive("max_request_tokens", self.max_request_tokens)


@dataclass(frozen=True, slots=True)
class EmbeddingProviderModel:
    """A model as the provider reports it; ``dim`` is its native width."""

    provider: str
    name: str
    dim: int | None = None

    def __post_init__(self) -> None:
        provider = self.provider.strip().lower()
        name = self.name.strip()
        if not provider or not name:
            raise ValueError("provider and model name are required")
        _require_positive("dim", self.dim)
        object.__setattr__(self, "provider", provider)
        object.__setattr__(self, "name", name)

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.name}"


@runtime_checkable
class EmbeddingsProvider(Protocol):
    """Operations the Vectorizer needs from an embedding backend."""

    def describe_model(self, model: str) -> EmbeddingProviderModel:
        """Resolve ``model``; raise a configuration error if it cannot load."""

    def capabilities(
        self,
        *,
        model: str | None = None,
    ) -> EmbeddingProviderCaps:
        """Return request limits, optionally specific to ``model``."""

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        model: str,
        options: EmbedRequestOptions,
    ) -> EmbeddingMatrix:
        """Return one vector per text, in input order."""


@dataclass(frozen=True, slots=True)
class ProviderInitContext:
    """Arguments handed to a provider factory."""

    logger: Logger
    config: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "config",
            MappingProxyType(dict(self.config or {})),
        )


ProviderFactory = Callable[[ProviderInitContext], EmbeddingsProvider]


class ProviderRegistryError(RuntimeError):
    """Raised for duplicate or malformed provider registrations."""


class UnknownProviderError(ProviderRegistryError):
    """Raised when no factory is registered under the requested name."""


def _normalize(name: str) -> str:
    normalized = name.strip().lower()
    if not normalized:
        raise ProviderRegistryError("provider name cannot be empty")
    return normalized


class ProviderRegistry:
    """Provider factories keyed by lowercase provider name."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        key = _normalize(name)
        if key in self._factories:
            raise ProviderRegistryError(f"Provider {key!r} already registered")
        self._factories[key] = factory

    def factory_for(self, name: str) -> ProviderFactory:
        key = _normalize(name)
        factory = self._factories.get(key)
        if factory is None:
            known = ", ".join(sorted(self._factories)) or "none"
            raise UnknownProviderError(
                f"Unknown embedding provider {key!r} (known: {known})"
            )
        return factory

    def create(
        self,
        name: str,
        *,
        logger: Logger,
        config: Mapping[str, object] | None = None,
    ) -> EmbeddingsProvider:
        """Build a fresh provider instance for ``name``."""

        factory = self.factory_for(name)
        return factory(ProviderInitContext(logger=logger, config=config or {}))

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))


# Provider name -> "module:factory"; imported on first use so optional
# backends (sentence-transformers, torch) stay unloaded until selected.
BUILTIN_PROVIDERS: Mapping[str, str] = MappingProxyType(
    {
        "openai": ".openai:openai_provider_factory",
        "sentence-transformers": (
            ".sentence_transformers:sentence_transformers_provider_factory"
        ),
    }
)


def _lazy_factory(target: str) -> ProviderFactory:
    module_name, attribute = target.split(":")

    def _factory(context: ProviderInitContext) -> EmbeddingsProvider:
        module = import_module(module_name, package=__name__)
        return getattr(module, attribute)(context)

    return _factory


def create_default_provider_registry() -> ProviderRegistry:
    """Return a registry holding every built-in provider."""

    registry = ProviderRegistry()
    for name, target in BUILTIN_PROVIDERS.items():
        registry.register(name, _lazy_factory(target))
    return registry
