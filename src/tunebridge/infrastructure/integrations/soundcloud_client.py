"""SoundCloud API client.

Hey future me - SoundCloud links carry a permalink ("artist/track-slug"), not an
id. /resolve?url=<permalink url> answers with a 302 to the real /tracks/{id}
(or /playlists/{id} for sets), so the httpx client follows redirects.

Auth: client credentials posted as FORM FIELDS (not Basic auth), and the token
goes in an "Authorization: OAuth <token>" header, not "Bearer".

There is no ISRC/UPC lookup in the public API.
"""

import logging
from typing import Any, cast

import httpx

from tunebridge.config.settings import SoundCloudSettings
from tunebridge.domain.exceptions import ConfigurationError, RateLimitExceededError
from tunebridge.infrastructure.integrations.oauth import ClientCredentialsToken
from tunebridge.infrastructure.rate_limiter import get_soundcloud_limiter, parse_retry_after

logger = logging.getLogger(__name__)


class SoundCloudClient:
    """HTTP client for SoundCloud track lookups."""

    TOKEN_URL = "https://secure.soundcloud.com/oauth/token"  # nosec B105 - public endpoint URL, not a password
    API_BASE_URL = "https://api.soundcloud.com"
    SITE_URL = "https://soundcloud.com"

    def __init__(
        self,
        settings: SoundCloudSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize SoundCloud client.

        Args:
            settings: SoundCloud credentials
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token = ClientCredentialsToken(
            "soundCloud",
            self.TOKEN_URL,
            settings.client_id,
            settings.client_secret,
            credentials_in_body=True,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json; charset=utf-8"},
                timeout=15.0,
                follow_redirects=True,
                transport=self._transport,
            )
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
            raise ConfigurationError("SoundCloud client id/secret not configured")

        client = await self._get_client()
        rate_limiter = get_soundcloud_limiter()
        token_refreshed = False
        attempt = 0

        while True:
            token = await self._token.get(client)
            async with rate_limiter:
                response = await client.get(
                    f"{self.API_BASE_URL}{path}",
                    params=params,
                    headers={"Authorization": f"OAuth {token}"},
                )

            if response.status_code == 401 and not token_refreshed:
                logger.info("SoundCloud token rejected, fetching a new one")
                self._token.invalidate()
                token_refreshed = True
                continue

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        "soundCloud",
                        f"SoundCloud API rate limited (429) after {max_retries} retries: {path}",
                        retry_after,
                    )
                attempt += 1
                await rate_limiter.handle_rate_limit_response(retry_after)
                continue

            return response

    async def resolve(self, permalink: str) -> dict[str, Any] | None:
        """Resolve a permalink path ("artist/track" or "artist/sets/name") to its resource."""
        response = await self._api_request(
            "/resolve", {"url": f"{self.SITE_URL}/{permalink.strip('/')}"}
        )
        if response.status_code in (400, 404):
            return None
        response.raise_for_status()
        return cast(dict[str, Any], response.json())

    async def search_tracks(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        response = await self._api_request("/tracks", {"q": query, "limit": min(limit, 50)})
        if response.status_code in (400, 404):
            return []
        response.raise_for_status()
        data = response.json()
        # Paginated responses wrap the list in "collection"
        if isinstance(data, dict):
            data = data.get("collection", [])
        return cast(list[dict[str, Any]], data)

    async def __aenter__(self) -> "SoundCloudClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
