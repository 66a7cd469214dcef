"""Apple Music API client (catalog endpoints, developer token only).

Hey future me - Apple has no client-credentials endpoint. Instead WE mint the
"developer token": an ES256-signed JWT with
    header:  {"alg": "ES256", "kid": <key id>}
    payload: {"iss": <team id>, "iat": now, "exp": now + lifetime}
signed with the MusicKit .p8 private key. Apple accepts it for up to six months;
we keep it for a day and re-mint (cheap, no network call).

Endpoints used (all under /v1/catalog/{storefront}):
- /songs/{id}, /albums/{id}        -> native lookups
- /songs?filter[isrc]=...          -> ISRC lookup (can return several songs)
- /albums?filter[upc]=...          -> UPC lookup
- /search?types=songs|albums       -> title/artist search

Every resource comes back wrapped as {"data": [{"id", "type", "attributes"}]}.
"""

import logging
import time
from pathlib import Path
from typing import Any, cast

import httpx
import jwt

from tunebridge.config.settings import AppleMusicSettings
from tunebridge.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    RateLimitExceededError,
)
from tunebridge.infrastructure.rate_limiter import get_apple_music_limiter, parse_retry_after

logger = logging.getLogger(__name__)

DEVELOPER_TOKEN_LIFETIME_SECONDS = 24 * 60 * 60
# Re-mint this long before the token's exp
TOKEN_EXPIRY_MARGIN_SECONDS = 10 * 60


class AppleMusicClient:
    """HTTP client for Apple Music catalog lookups."""

    API_BASE_URL = "https://api.music.apple.com/v1/catalog"

    def __init__(
        self,
        settings: AppleMusicSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Apple Music client.

        Args:
            settings: Team id, key id and MusicKit private key
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._private_key: str | None = None
        self._developer_token: str | None = None
        self._token_expires_at: float = 0.0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={"Accept": "application/json"},
                timeout=15.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # DEVELOPER TOKEN
    # =========================================================================

    def _load_private_key(self) -> str:
        if self._private_key is None:
            if self.settings.private_key:
                self._private_key = self.settings.private_key
            else:
                try:
                    self._private_key = Path(self.settings.private_key_path).read_text()
                except OSError as e:
                    raise ConfigurationError(
                        f"Unable to read Apple Music private key "
                        f"'{self.settings.private_key_path}': {e}"
                    ) from e
        return self._private_key

    def _get_developer_token(self) -> str:
        """Return the cached developer token, minting a new one when it is about to expire.

        Raises:
            ConfigurationError: If team id, key id or private key are missing
            AuthenticationError: If the private key can't sign an ES256 token
        """
        if not self.settings.is_configured:
            raise ConfigurationError("Apple Music team id/key id/private key not configured")

        now = time.time()
        if self._developer_token and now < self._token_expires_at:
            return self._developer_token

        issued_at = int(now)
        expires_at = issued_at + DEVELOPER_TOKEN_LIFETIME_SECONDS
        try:
            token = jwt.encode(
                {"iss": self.settings.team_id, "iat": issued_at, "exp": expires_at},
                self._load_private_key(),
                algorithm="ES256",
                headers={"kid": self.settings.key_id},
            )
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            raise AuthenticationError(
                "appleMusic", f"Failed to sign Apple Music developer token: {e}"
            ) from e

        self._developer_token = token
        self._token_expires_at = expires_at - TOKEN_EXPIRY_MARGIN_SECONDS
        logger.debug("Minted Apple Music developer token (kid=%s)", self.settings.key_id)
        return token

    # =========================================================================
    # REQUESTS
    # =========================================================================

    async def _api_request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        max_retries: int = 2,
    ) -> httpx.Response:
        """Make a rate-limited GET against the catalog API.

        A 401 re-mints the developer token once, a 429 is retried after Retry-After.

        Raises:
            RateLimitExceededError: Still rate limited after max_retries
            AuthenticationError: Apple rejected a freshly minted token
        """
        client = await self._get_client()
        rate_limiter = get_apple_music_limiter()
        token_refreshed = False
        attempt = 0

        while True:
            token = self._get_developer_token()
            async with rate_limiter:
                response = await client.get(
                    path, params=params, headers={"Authorization": f"Bearer {token}"}
                )

            if response.status_code in (401, 403):
                if token_refreshed:
                    raise AuthenticationError(
                        "appleMusic",
                        f"Apple Music rejected the developer token: HTTP {response.status_code}",
                    )
                logger.info("Apple Music token rejected, minting a new one")
                self._developer_token = None
                token_refreshed = True
                continue

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        "appleMusic",
                        f"Apple Music API rate limited (429) after {max_retries} retries: {path}",
                        retry_after,
                    )
                attempt += 1
                await rate_limiter.handle_rate_limit_response(retry_after)
                continue

            return response

    async def _get_data(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """GET a resource collection; empty on 404/400 (unknown or invalid id)."""
        response = await self._api_request(path, params)
        if response.status_code in (400, 404):
            return []
        response.raise_for_status()
        return cast(list[dict[str, Any]], response.json().get("data", []))

    async def get_song(self, storefront: str, song_id: str) -> dict[str, Any] | None:
        songs = await self._get_data(f"/{storefront}/songs/{song_id}")
        return songs[0] if songs else None

    async def get_album(self, storefront: str, album_id: str) -> dict[str, Any] | None:
        albums = await self._get_data(f"/{storefront}/albums/{album_id}")
        return albums[0] if albums else None

    async def get_songs_by_isrc(self, storefront: str, isrc: str) -> list[dict[str, Any]]:
        return await self._get_data(f"/{storefront}/songs", {"filter[isrc]": isrc})

    async def get_albums_by_upc(self, storefront: str, upc: str) -> list[dict[str, Any]]:
        return await self._get_data(f"/{storefront}/albums", {"filter[upc]": upc})

    async def search(
        self,
        storefront: str,
        term: str,
        search_type: str = "songs",
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Search the storefront catalog.

        Args:
            storefront: Two-letter storefront (market)
            term: Free-text search term
            search_type: "songs" or "albums"
            limit: Max results (Apple caps at 25)

        Returns:
            List of song/album resources (empty if nothing matched)
        """
        response = await self._api_request(
            f"/{storefront}/search",
            {"term": term, "types": search_type, "limit": min(limit, 25)},
        )
        if response.status_code in (400, 404):
            return []
        response.raise_for_status()
        results = response.json().get("results", {})
        return cast(list[dict[str, Any]], results.get(search_type, {}).get("data", []))

    async def __aenter__(self) -> "AppleMusicClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
