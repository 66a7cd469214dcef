"""Spotify Web API client (client-credentials flow).

Hey future me - we only READ public catalog data, so there's no user OAuth here.
The client-credentials token is fetched lazily, cached until shortly before it
expires, and refreshed transparently. No user ever logs in.
"""

import logging
from typing import Any, cast

import httpx

from tunebridge.config.settings import SpotifySettings
from tunebridge.domain.exceptions import ConfigurationError, RateLimitExceededError
from tunebridge.infrastructure.integrations.oauth import ClientCredentialsToken
from tunebridge.infrastructure.rate_limiter import get_spotify_limiter, parse_retry_after

logger = logging.getLogger(__name__)


class SpotifyClient:
    """HTTP client for Spotify catalog lookups."""

    TOKEN_URL = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL, not a password
    API_BASE_URL = "https://api.spotify.com/v1"

    # The httpx client is NOT created here - it's lazy-loaded in _get_client() so the
    # client binds to the running event loop, not whatever loop existed at import time.
    def __init__(
        self,
        settings: SpotifySettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Spotify client.

        Args:
            settings: Spotify credentials
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token = ClientCredentialsToken(
            "spotify", self.TOKEN_URL, settings.client_id, settings.client_secret
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=15.0, transport=self._transport)
        return self._client

    # Always close() (or use `async with`) - otherwise pooled connections leak.
    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_access_token(self) -> str:
        """Return a valid app token.

        Raises:
            ConfigurationError: If no client id/secret is configured
            AuthenticationError: If Spotify rejects the credentials
        """
        if not self.settings.is_configured:
            raise ConfigurationError("Spotify client id/secret not configured")
        return await self._token.get(await self._get_client())

    # =========================================================================
    # REQUESTS
    # =========================================================================

    # Hey future me - ALL catalog calls go through here:
    # - token bucket rate limiting (shared Spotify limiter)
    # - retry on 429, honouring Retry-After
    # - a 401 drops the cached token and retries once (token revoked/expired early)
    async def _api_request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        max_retries: int = 2,
    ) -> httpx.Response:
        """Make a rate-limited GET against the Web API.

        Args:
            path: Path below API_BASE_URL (e.g. "/tracks/{id}")
            params: Query parameters
            max_retries: Retries on 429

        Returns:
            httpx.Response (status not checked except 429/401)

        Raises:
            RateLimitExceededError: Still rate limited after max_retries
        """
        client = await self._get_client()
        rate_limiter = get_spotify_limiter()
        token_refreshed = False
        attempt = 0

        while True:
            token = await self._get_access_token()
            async with rate_limiter:
                response = await client.get(
                    f"{self.API_BASE_URL}{path}",
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )

            if response.status_code == 401 and not token_refreshed:
                logger.info("Spotify token rejected, fetching a new one")
                self._token.invalidate()
                token_refreshed = True
                continue

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        "spotify",
                        f"Spotify API rate limited (429) after {max_retries} retries: {path}",
                        retry_after,
                    )
                attempt += 1
                await rate_limiter.handle_rate_limit_response(retry_after)
                continue

            return response

    async def _get_json(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """GET and decode JSON; None on 404/400 (unknown or invalid id)."""
        response = await self._api_request(path, params)
        if response.status_code in (400, 404):
            return None
        response.raise_for_status()
        return cast(dict[str, Any], response.json())

    async def get_track(self, track_id: str, market: str | None = None) -> dict[str, Any] | None:
        """Get a track by Spotify id."""
        return await self._get_json(f"/tracks/{track_id}", _market_params(market))

    async def get_album(self, album_id: str, market: str | None = None) -> dict[str, Any] | None:
        """Get an album (with external_ids.upc) by Spotify id."""
        return await self._get_json(f"/albums/{album_id}", _market_params(market))

    async def search(
        self,
        query: str,
        search_type: str = "track",
        market: str | None = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Search the catalog.

        Args:
            query: Spotify search query (supports isrc:/upc:/artist:/track:/album: filters)
            search_type: "track" or "album"
            market: Market to search in
            limit: Max results (Spotify caps at 50)

        Returns:
            List of track/album objects (empty if nothing matched)
        """
        params: dict[str, Any] = {"q": query, "type": search_type, "limit": min(limit, 50)}
        params.update(_market_params(market))
        data = await self._get_json("/search", params)
        if not data:
            return []
        return cast(list[dict[str, Any]], data.get(f"{search_type}s", {}).get("items", []))

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _market_params(market: str | None) -> dict[str, str]:
    return {"market": market.upper()} if market else {}
