"""Music Provider Port (Interface) for cross-platform resolution.

Following Hexagonal Architecture (Ports & Adapters), this is a PORT in the
domain layer. Implementations (Spotify, Deezer, ...) live in
infrastructure/providers.

Each provider adapter just translates a query into an API call and maps the
response onto a ProviderResult. Ranking, retries, rate limiting all stay inside
the adapter - the resolution core only ever sees "a result" or "no result".
"""

from abc import ABC, abstractmethod

from tunebridge.domain.entities import (
    EntityKind,
    IdentifierKind,
    Provider,
    ProviderResult,
)


class IMusicProvider(ABC):
    """Interface for streaming provider implementations.

    Adapters MAY raise (network errors, ProviderUnavailableError, ...) - the
    ProviderGateway absorbs every failure and turns it into None. Adapters should
    return None for a confirmed "not found".
    """

    @property
    @abstractmethod
    def provider_type(self) -> Provider:
        """Return the provider enum value.

        Example:
            return Provider.SPOTIFY
        """
        pass

    @abstractmethod
    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        """Look up a track/album by the provider's own id.

        Args:
            entity_kind: What the id refers to
            native_id: Provider-specific id (from the classified link)
            market: ISO 3166-1 alpha-2 market/storefront

        Returns:
            ProviderResult or None if not found
        """
        pass

    @abstractmethod
    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        """Look up a track (ISRC) or album (UPC).

        Args:
            identifier_kind: ISRC or UPC
            value: Canonical identifier value
            market: ISO 3166-1 alpha-2 market

        Returns:
            ProviderResult or None if not found
        """
        pass

    @abstractmethod
    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        """Best-effort search by title and artist.

        Args:
            title: Title to search for
            artist: Artist name
            market: ISO 3166-1 alpha-2 market
            is_album: Restrict to albums (True) or tracks (False); None = tracks

        Returns:
            Best match or None
        """
        pass

    async def close(self) -> None:
        """Release HTTP clients etc. Default: nothing to release."""
        return None


class IMusicProviderRegistry(ABC):
    """Interface for the provider lookup keyed by Provider."""

    @abstractmethod
    def register(self, provider: IMusicProvider) -> None:
        """Register a provider implementation."""
        pass

    @abstractmethod
    def unregister(self, provider_type: Provider) -> None:
        """Remove a provider implementation."""
        pass

    @abstractmethod
    def get_provider(self, provider_type: Provider) -> IMusicProvider | None:
        """Get a provider by type."""
        pass

    @abstractmethod
    def get_all_providers(self) -> list[IMusicProvider]:
        """Get all registered providers in registration order."""
        pass
