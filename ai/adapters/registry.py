"""Provider registry: the lookup table from model identifier to adapter."""
from typing import Dict, List, Optional

import httpx

from ai.adapters.providers import DEFAULT_TIMEOUT, BaseProvider, create_provider
from core.config import Config
from core.errors import UnknownModel
from core.logging import logger


class ProviderRegistry:
    """Registry for the adapters the gateway can dispatch to."""

    def __init__(self):
        self._providers: Dict[str, BaseProvider] = {}

    def register(self, name: str, provider: BaseProvider) -> None:
        if name in self._providers:
            logger.info(f"Replacing provider '{name}'")
        self._providers[name] = provider

    def get(self, name: Optional[str]) -> BaseProvider:
        """
        Get the adapter registered for a model identifier.

        Raises:
            UnknownModel: if nothing is registered under ``name``.
        """
        provider = self._providers.get(name or "")
        if provider is None:
            raise UnknownModel(name or "")
        return provider

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def names(self) -> List[str]:
        """List all registered model identifiers."""
        return list(self._providers.keys())


def build_registry(config: Config, client: httpx.AsyncClient) -> ProviderRegistry:
    """Creates one adapter per configured provider, all sharing ``client``."""
    registry = ProviderRegistry()
    timeout = config.providers.timeout_seconds or DEFAULT_TIMEOUT
    for name, settings in config.providers.providers.items():
        api_key = config.api_key_for(name)
        if not api_key:
            logger.warning(f"No API key configured for '{name}' ({settings.api_key_env}); calls will fail")
        registry.register(name, create_provider(name, settings, api_key, client, timeout=timeout))
    logger.info(f"Registered providers: {', '.join(registry.names())}")
    return registry


def create_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Pooled HTTP client shared by all adapters."""
    return httpx.AsyncClient(timeout=timeout)
