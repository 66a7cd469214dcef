"""Deezer public API client.

Hey future me - Deezer's public API needs NO authentication, which makes it the
perfect always-on cross-reference provider. It also has the two endpoints we
care about most:

- /track/isrc:{ISRC}  -> exact track by ISRC
- /album/upc:{UPC}    -> exact album by barcode

Quirk: "not found" is NOT a 404! Deezer answers 200 with
{"error": {"type": "DataException", "code": 800}}. Rate limiting also comes as a
200 with error code 4. Both are handled in _api_request/_get_json.

Rate limit: 50 requests / 5 seconds per IP, enforced by the shared Deezer limiter.
"""

import logging
from typing import Any, cast

import httpx

from tunebridge.domain.exceptions import ProviderUnavailableError, RateLimitExceededError
from tunebridge.infrastructure.rate_limiter import get_deezer_limiter

logger = logging.getLogger(__name__)

# Deezer error codes (returned inside a 200 body)
QUOTA_ERROR_CODE = 4
DATA_NOT_FOUND_CODE = 800


class DeezerClient:
    """HTTP client for Deezer catalog lookups (no auth)."""

    API_BASE_URL = "https://api.deezer.com"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialize Deezer client.

        Args:
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={
                    "User-Agent": "TuneBridge/0.1",
                    "Accept": "application/json",
                },
                timeout=10.0,
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
        endpoint: str,
        params: dict[str, Any] | None = None,
        max_retries: int = 2,
    ) -> dict[str, Any]:
        """Make a rate-limited GET and return the decoded body.

        Raises:
            RateLimitExceededError: Quota error persisted after max_retries
            ProviderUnavailableError: Non-JSON body
            httpx.HTTPStatusError: On HTTP-level errors
        """
        client = await self._get_client()
        rate_limiter = get_deezer_limiter()

        for attempt in range(max_retries + 1):
            async with rate_limiter:
                response = await client.get(endpoint, params=params)
            response.raise_for_status()

            try:
                data = response.json()
            except ValueError as e:
                raise ProviderUnavailableError(
                    "deezer", f"Deezer returned invalid JSON for {endpoint}"
                ) from e

            error = data.get("error") if isinstance(data, dict) else None
            if isinstance(error, dict) and error.get("code") == QUOTA_ERROR_CODE:
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        "deezer", f"Deezer quota exceeded after {max_retries} retries: {endpoint}"
                    )
                await rate_limiter.handle_rate_limit_response()
                continue

            return cast(dict[str, Any], data)

        # Loop always returns or raises
        raise RateLimitExceededError("deezer", f"Deezer quota exceeded: {endpoint}")

    async def _get_json(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """GET an entity; None when Deezer reports it doesn't exist."""
        data = await self._api_request(endpoint, params)
        if "error" in data:
            logger.debug("Deezer %s: %s", endpoint, data["error"])
            return None
        return data

    async def get_track(self, track_id: str) -> dict[str, Any] | None:
        return await self._get_json(f"/track/{track_id}")

    async def get_album(self, album_id: str) -> dict[str, Any] | None:
        return await self._get_json(f"/album/{album_id}")

    # THE golden methods for matching - exact identifier lookups
    async def get_track_by_isrc(self, isrc: str) -> dict[str, Any] | None:
        return await self._get_json(f"/track/isrc:{isrc}")

    async def get_album_by_upc(self, upc: str) -> dict[str, Any] | None:
        return await self._get_json(f"/album/upc:{upc}")

    async def search(
        self, query: str, search_type: str = "track", limit: int = 10
    ) -> list[dict[str, Any]]:
        """Search tracks or albums.

        Args:
            query: Deezer advanced query, e.g. 'artist:"Muse" track:"Uprising"'
            search_type: "track" or "album"
            limit: Max results

        Returns:
            List of track/album objects
        """
        data = await self._get_json(
            f"/search/{search_type}", {"q": query, "limit": min(limit, 100)}
        )
        if not data:
            return []
        return cast(list[dict[str, Any]], data.get("data", []))

    async def __aenter__(self) -> "DeezerClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
