"""YouTube Music Provider implementation.

YouTube JSON cheat sheet (item.snippet):
- title         "Artist - Song" for most official uploads, else just the song
- channelTitle  uploader; auto-generated artist channels end in " - Topic"
- thumbnails    {"default", "medium", "high", ...}.url

No ISRC/UPC anywhere, so YouTube Music only joins a cross-reference through
title/artist search. Watch links map to tracks, playlist links to albums.
"""

import logging
from typing import Any

import httpx

from tunebridge.domain.entities import (
    EntityKind,
    IdentifierKind,
    Provider,
    ProviderResult,
)
from tunebridge.domain.exceptions import ProviderUnavailableError
from tunebridge.domain.ports import IMusicProvider
from tunebridge.domain.value_objects import titles_match
from tunebridge.infrastructure.integrations.youtube_client import YouTubeClient

logger = logging.getLogger(__name__)

WATCH_URL = "https://music.youtube.com/watch?v={id}"
PLAYLIST_URL = "https://music.youtube.com/playlist?list={id}"
TOPIC_SUFFIX = " - Topic"


def split_video_title(title: str, channel: str) -> tuple[str, str]:
    """Split a video title into (artist, song).

    "Nirvana - Come As You Are" -> ("Nirvana", "Come As You Are"). Titles
    without the separator keep the channel (minus " - Topic") as the artist.
    """
    artist, separator, song = title.partition(" - ")
    if separator and artist.strip() and song.strip():
        return artist.strip(), song.strip()
    return channel.removesuffix(TOPIC_SUFFIX).strip(), title.strip()


def _thumbnail(snippet: dict[str, Any]) -> str | None:
    thumbnails = snippet.get("thumbnails") or {}
    for size in ("maxres", "high", "medium", "default"):
        url = thumbnails.get(size, {}).get("url")
        if url:
            return url
    return None


class YouTubeMusicProvider(IMusicProvider):
    """Provider adapter for YouTube Music."""

    def __init__(self, client: YouTubeClient) -> None:
        """Initialize with YouTube client.

        Args:
            client: YouTubeClient for API calls
        """
        self._client = client

    @property
    def provider_type(self) -> Provider:
        return Provider.YOUTUBE_MUSIC

    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        try:
            if entity_kind in (EntityKind.VIDEO, EntityKind.TRACK):
                video = await self._client.get_video(native_id)
                return self._parse_video(video, native_id, market) if video else None
            if entity_kind == EntityKind.PLAYLIST:
                playlist = await self._client.get_playlist(native_id)
                return self._parse_playlist(playlist, native_id, market) if playlist else None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("youTubeMusic", f"YouTube API error: {e}") from e

        logger.debug("YouTube Music lookup for %s not supported", entity_kind.value)
        return None

    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        logger.debug("YouTube Music has no %s lookup", identifier_kind.value)
        return None

    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        # Search only finds videos; a video must never stand in for an album
        if is_album:
            return None

        try:
            items = await self._client.search_music_videos(f"{artist} {title}", market)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("youTubeMusic", f"YouTube API error: {e}") from e

        results = [
            self._parse_video(item, item["id"]["videoId"], market)
            for item in items
            if item.get("id", {}).get("videoId")
        ]
        if not results:
            return None
        return next(
            (result for result in results if titles_match(result.title, title, False)),
            results[0],
        )

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _parse_video(item: dict[str, Any], video_id: str, market: str) -> ProviderResult:
        snippet = item.get("snippet", {})
        artist, song = split_video_title(snippet.get("title", ""), snippet.get("channelTitle", ""))
        return ProviderResult(
            provider=Provider.YOUTUBE_MUSIC,
            artist=artist,
            title=song,
            url=WATCH_URL.format(id=video_id),
            art_url=_thumbnail(snippet),
            market_region=market,
            is_album=False,
        )

    @staticmethod
    def _parse_playlist(item: dict[str, Any], playlist_id: str, market: str) -> ProviderResult:
        snippet = item.get("snippet", {})
        return ProviderResult(
            provider=Provider.YOUTUBE_MUSIC,
            artist=snippet.get("channelTitle", "").removesuffix(TOPIC_SUFFIX).strip(),
            title=snippet.get("title", ""),
            url=PLAYLIST_URL.format(id=playlist_id),
            art_url=_thumbnail(snippet),
            market_region=market,
            is_album=True,
        )
