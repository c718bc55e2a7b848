"""Adapters layer: provider translation and the model-identifier registry.

The request router lives in ``ai.adapters.router``; it is not re-exported here
because it depends on the conversation assembler, which depends on these
adapters.
"""

from __future__ import annotations

from .providers import (
    PROVIDER_TYPES,
    AnthropicProvider,
    BaseProvider,
    GeminiProvider,
    OpenAIProvider,
    PerplexityProvider,
    create_provider,
)
from .registry import ProviderRegistry, build_registry, create_http_client

__all__ = [
    "PROVIDER_TYPES",
    "AnthropicProvider",
    "BaseProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "PerplexityProvider",
    "create_provider",
    "ProviderRegistry",
    "build_registry",
    "create_http_client",
]
