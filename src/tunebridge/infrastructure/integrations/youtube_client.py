"""YouTube Data API v3 client (backs the YouTube Music provider).

Hey future me - YouTube Music has no public API. Its watch/playlist ids are plain
YouTube ids though, so the Data API's /videos, /playlists and /search endpoints
work on them. Auth is just ?key=<api key>.

Quota is counted in daily UNITS (search = 100, videos/playlists = 1), and running
out is a 403 with reason "quotaExceeded", not a 429. Retrying that is pointless
until midnight Pacific, so it raises straight away.
"""

import logging
from typing import Any, cast

import httpx

from tunebridge.config.settings import YouTubeMusicSettings
from tunebridge.domain.exceptions import ConfigurationError, RateLimitExceededError
from tunebridge.infrastructure.rate_limiter import get_youtube_limiter, parse_retry_after

logger = logging.getLogger(__name__)

# YouTube's "Music" video category
MUSIC_CATEGORY_ID = "10"
QUOTA_ERROR_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded"})


def _error_reasons(response: httpx.Response) -> set[str]:
    try:
        errors = response.json().get("error", {}).get("errors", [])
    except ValueError:
        return set()
    return {error.get("reason", "") for error in errors}


class YouTubeClient:
    """HTTP client for YouTube Data API lookups."""

    API_BASE_URL = "https://www.googleapis.com/youtube/v3"

    def __init__(
        self,
        settings: YouTubeMusicSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize YouTube client.

        Args:
            settings: API key
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL, timeout=15.0, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_items(
        self, endpoint: str, params: dict[str, Any], max_retries: int = 2
    ) -> list[dict[str, Any]]:
        """Make a rate-limited GET and return the response's items.

        Raises:
            ConfigurationError: If no API key is configured
            RateLimitExceededError: Quota exhausted, or still 429 after max_retries
            httpx.HTTPStatusError: On other HTTP-level errors
        """
        if not self.settings.is_configured:
            raise ConfigurationError("YouTube API key not configured")

        client = await self._get_client()
        rate_limiter = get_youtube_limiter()

        for attempt in range(max_retries + 1):
            async with rate_limiter:
                response = await client.get(
                    endpoint, params={**params, "key": self.settings.api_key}
                )

            if response.status_code == 403 and _error_reasons(response) & QUOTA_ERROR_REASONS:
                raise RateLimitExceededError("youTubeMusic", "YouTube API quota exhausted")

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        "youTubeMusic",
                        f"YouTube API rate limited (429) after {max_retries} retries: {endpoint}",
                        retry_after,
                    )
                await rate_limiter.handle_rate_limit_response(retry_after)
                continue

            if response.status_code in (400, 404):
                return []
            response.raise_for_status()
            return cast(list[dict[str, Any]], response.json().get("items", []))

        # Loop always returns or raises
        raise RateLimitExceededError("youTubeMusic", f"YouTube API rate limited: {endpoint}")

    async def get_video(self, video_id: str) -> dict[str, Any] | None:
        items = await self._get_items("/videos", {"part": "snippet", "id": video_id})
        return items[0] if items else None

    async def get_playlist(self, playlist_id: str) -> dict[str, Any] | None:
        items = await self._get_items("/playlists", {"part": "snippet", "id": playlist_id})
        return items[0] if items else None

    async def search_music_videos(
        self, query: str, market: str | None = None, limit: int = 5
    ) -> list[dict[str, Any]]:
        """Search videos in the Music category.

        Returns:
            Search results; the video id is at item["id"]["videoId"]
        """
        params: dict[str, Any] = {
            "part": "snippet",
            "type": "video",
            "videoCategoryId": MUSIC_CATEGORY_ID,
            "q": query,
            "maxResults": min(limit, 50),
        }
        if market:
            params["regionCode"] = market.upper()
        return await self._get_items("/search", params)

    async def __aenter__(self) -> "YouTubeClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
