"""Inference capability for Statecraft.

Provides the capability protocol, an OpenAI-compatible async HTTP
provider, a mock provider, and the provider registry.
"""

from statecraft.llm.client import OpenAICompatibleProvider
from statecraft.llm.errors import (
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
)
from statecraft.llm.mock import MockProvider
from statecraft.llm.protocols import InferenceProvider, InferenceResponse, InferFn, TokenUsage
from statecraft.llm.registry import (
    available_providers,
    create_provider,
    is_provider_available,
    register_provider,
    unregister_provider,
)

__all__ = [
    "OpenAICompatibleProvider",
    "MockProvider",
    "InferenceProvider",
    "InferenceResponse",
    "InferFn",
    "TokenUsage",
    "create_provider",
    "register_provider",
    "unregister_provider",
    "available_providers",
    "is_provider_available",
    "LLMClientError",
    "LLMConfigError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMResponseError",
]
