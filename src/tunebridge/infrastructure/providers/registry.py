"""Music Provider Registry implementation.

Holds one adapter per Provider. The ProviderGateway dispatches through this
lookup instead of knowing any concrete adapter class.
"""

import logging

from tunebridge.domain.entities import Provider
from tunebridge.domain.ports import IMusicProvider, IMusicProviderRegistry

logger = logging.getLogger(__name__)


class MusicProviderRegistry(IMusicProviderRegistry):
    """Registry for provider adapters, keyed by Provider.

    Providers are registered at application startup. Registration order is kept,
    which is also the default seed-search order.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._providers: dict[Provider, IMusicProvider] = {}

    def register(self, provider: IMusicProvider) -> None:
        """Register a provider adapter (replaces an existing one for the same type).

        Args:
            provider: Adapter implementation to register
        """
        self._providers[provider.provider_type] = provider
        logger.info("Registered music provider: %s", provider.provider_type.value)

    def unregister(self, provider_type: Provider) -> None:
        """Unregister a provider adapter.

        Args:
            provider_type: Type of provider to unregister
        """
        if provider_type in self._providers:
            self._providers.pop(provider_type)
            logger.info("Unregistered music provider: %s", provider_type.value)

    def get_all_providers(self) -> list[IMusicProvider]:
        """Get all registered providers."""
        return list(self._providers.values())

    def get_provider(self, provider_type: Provider) -> IMusicProvider | None:
        """Get a specific provider by type."""
        return self._providers.get(provider_type)

    async def close(self) -> None:
        """Close every registered adapter (called on shutdown)."""
        for provider in self._providers.values():
            try:
                await provider.close()
            except Exception as e:
                logger.warning(
                    "Error closing provider %s: %s", provider.provider_type.value, e
                )
