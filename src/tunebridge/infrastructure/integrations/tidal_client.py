"""Tidal developer API client (openapi.tidal.com, JSON:API documents).

Hey future me - Tidal answers in JSON:API shape, NOT plain objects:

    {"data": {...} or [...], "included": [{"type": "artists", "id": ..., "attributes": ...}]}

Names of artists, album ids and artwork files live in `included`, linked from
data.relationships. This client returns the raw documents; the provider does
the stitching. Every call needs a countryCode (the market, upper-cased).

Auth is client credentials against auth.tidal.com (Basic auth header).
"""

import logging
from typing import Any, cast
from urllib.parse import quote

import httpx

from tunebridge.config.settings import TidalSettings
from tunebridge.domain.exceptions import ConfigurationError, RateLimitExceededError
from tunebridge.infrastructure.integrations.oauth import ClientCredentialsToken
from tunebridge.infrastructure.rate_limiter import get_tidal_limiter, parse_retry_after

logger = logging.getLogger(__name__)

JSON_API_MEDIA_TYPE = "application/vnd.api+json"


class TidalClient:
    """HTTP client for Tidal catalog lookups."""

    TOKEN_URL = "https://auth.tidal.com/v1/oauth2/token"  # nosec B105 - public endpoint URL, not a password
    API_BASE_URL = "https://openapi.tidal.com/v2"

    def __init__(
        self,
        settings: TidalSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Tidal client.

        Args:
            settings: Tidal credentials
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token = ClientCredentialsToken(
            "tidal", self.TOKEN_URL, settings.client_id, settings.client_secret
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=15.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _api_request(
        self,
        path: str,
        params: dict[str, Any],
        max_retries: int = 2,
    ) -> httpx.Response:
        """Make a rate-limited GET; 401 refreshes the token once, 429 is retried.

        Raises:
            ConfigurationError: If no client id/secret is configured
            RateLimitExceededError: Still rate limited after max_retries
        """
        if not self.settings.is_configured:
            raise ConfigurationError("Tidal client id/secret not configured")

        client = await self._get_client()
        rate_limiter = get_tidal_limiter()
        token_refreshed = False
        attempt = 0

        while True:
            token = await self._token.get(client)
            async with rate_limiter:
                response = await client.get(
                    f"{self.API_BASE_URL}{path}",
                    params=params,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": JSON_API_MEDIA_TYPE,
                    },
                )

            if response.status_code == 401 and not token_refreshed:
                logger.info("Tidal token rejected, fetching a new one")
                self._token.invalidate()
                token_refreshed = True
                continue

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        "tidal",
                        f"Tidal API rate limited (429) after {max_retries} retries: {path}",
                        retry_after,
                    )
                attempt += 1
                await rate_limiter.handle_rate_limit_response(retry_after)
                continue

            return response

    async def _get_document(
        self, path: str, market: str, **params: Any
    ) -> dict[str, Any] | None:
        """GET a JSON:API document; None on 404/400 (unknown or invalid id)."""
        response = await self._api_request(path, {"countryCode": market.upper(), **params})
        if response.status_code in (400, 404):
            return None
        response.raise_for_status()
        return cast(dict[str, Any], response.json())

    async def get_track(self, track_id: str, market: str) -> dict[str, Any] | None:
        return await self._get_document(f"/tracks/{track_id}", market, include="artists,albums")

    async def get_album(self, album_id: str, market: str) -> dict[str, Any] | None:
        return await self._get_document(f"/albums/{album_id}", market, include="artists,coverArt")

    async def get_tracks_by_isrc(self, isrc: str, market: str) -> dict[str, Any] | None:
        return await self._get_document(
            "/tracks", market, include="artists,albums", **{"filter[isrc]": isrc}
        )

    async def get_albums_by_barcode(self, upc: str, market: str) -> dict[str, Any] | None:
        return await self._get_document(
            "/albums", market, include="artists,coverArt", **{"filter[barcodeId]": upc}
        )

    async def search(self, query: str, market: str) -> dict[str, Any] | None:
        """Search tracks and albums; hits are in the document's `included`."""
        return await self._get_document(
            f"/searchResults/{quote(query, safe='')}", market, include="tracks,albums"
        )

    async def __aenter__(self) -> "TidalClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
