"""Provider registry: maps a kind discriminator to a factory.

Factories take a ProviderConfig and return an object implementing the
InferenceProvider protocol. New backends are added with
``register_provider`` rather than by subclassing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from statecraft.exceptions import ProviderNotFoundError
from statecraft.llm.client import OpenAICompatibleProvider
from statecraft.llm.mock import MockProvider
from statecraft.llm.protocols import InferenceProvider
from statecraft.models.config import ProviderConfig

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderConfig], InferenceProvider]

# OpenAI-compatible endpoints that only differ by base URL and default model.
_OPENAI_COMPATIBLE: dict[str, tuple[str, str]] = {
    "openai": ("https://api.openai.com/v1", "gpt-4o-mini"),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.1-8b-instant"),
    "cerebras": ("https://api.cerebras.ai/v1", "llama3.1-8b"),
}


def _openai_compatible(kind: str) -> ProviderFactory:
    base_url, model = _OPENAI_COMPATIBLE[kind]

    def factory(config: ProviderConfig) -> InferenceProvider:
        return OpenAICompatibleProvider(
            api_key=config.api_key,
            base_url=config.base_url or base_url,
            model=config.model or model,
            name=kind,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    return factory


def _mock(config: ProviderConfig) -> InferenceProvider:
    return MockProvider(config.responses)


_FACTORIES: dict[str, ProviderFactory] = {
    **{kind: _openai_compatible(kind) for kind in _OPENAI_COMPATIBLE},
    "mock": _mock,
}


def create_provider(config: ProviderConfig | dict) -> InferenceProvider:
    """Create a provider from a configuration.

    Args:
        config: A ProviderConfig, or a dict accepted by ProviderConfig.

    Raises:
        ProviderNotFoundError: If ``config.kind`` is not registered.
    """
    if isinstance(config, dict):
        config = ProviderConfig(**config)
    factory = _FACTORIES.get(config.kind)
    if factory is None:
        raise ProviderNotFoundError(config.kind, available_providers())
    logger.debug("Creating provider kind=%s model=%s", config.kind, config.model)
    return factory(config)


def register_provider(kind: str, factory: ProviderFactory) -> None:
    """Register (or replace) the factory for ``kind``."""
    if not kind:
        raise ValueError("Provider kind must be a non-empty string.")
    _FACTORIES[kind] = factory


def unregister_provider(kind: str) -> None:
    """Remove a registered factory. Unknown kinds are ignored."""
    _FACTORIES.pop(kind, None)


def available_providers() -> list[str]:
    """Registered provider kinds, sorted."""
    return sorted(_FACTORIES)


def is_provider_available(kind: str) -> bool:
    return kind in _FACTORIES
