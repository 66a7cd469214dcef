"""Deezer Music Provider implementation.

Deezer JSON cheat sheet:
- track: title, artist.name, isrc, link, album.cover_xl
- album: title, artist.name, upc, link, cover_xl

Deezer's catalog is global-ish and the public API ignores markets, so the
market argument is only echoed into the result.

Search hits (/search/track, /search/album) are "light" objects WITHOUT isrc/upc,
so the best hit is re-fetched by id to get its identifier.
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
from tunebridge.infrastructure.integrations.deezer_client import DeezerClient

logger = logging.getLogger(__name__)


class DeezerMusicProvider(IMusicProvider):
    """Provider adapter for Deezer."""

    def __init__(self, client: DeezerClient) -> None:
        """Initialize with Deezer client.

        Args:
            client: DeezerClient for API calls
        """
        self._client = client

    @property
    def provider_type(self) -> Provider:
        return Provider.DEEZER

    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        try:
            if entity_kind == EntityKind.TRACK:
                track = await self._client.get_track(native_id)
                return self._parse_track(track, market) if track else None
            if entity_kind == EntityKind.ALBUM:
                album = await self._client.get_album(native_id)
                return self._parse_album(album, market) if album else None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("deezer", f"Deezer API error: {e}") from e

        logger.debug("Deezer lookup for %s not supported", entity_kind.value)
        return None

    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        try:
            if identifier_kind == IdentifierKind.ISRC:
                track = await self._client.get_track_by_isrc(value)
                return self._parse_track(track, market) if track else None
            album = await self._client.get_album_by_upc(value)
            return self._parse_album(album, market) if album else None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("deezer", f"Deezer API error: {e}") from e

    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        search_type = "album" if is_album else "track"
        query = f'artist:"{artist}" {search_type}:"{title}"'
        try:
            items = await self._client.search(query, search_type, limit=10)
            if not items:
                return None

            best = next(
                (item for item in items if titles_match(item.get("title", ""), title, is_album)),
                items[0],
            )
            item_id = str(best.get("id", ""))
            if is_album:
                full = await self._client.get_album(item_id) if item_id else None
                return self._parse_album(full or best, market)
            full = await self._client.get_track(item_id) if item_id else None
            return self._parse_track(full or best, market)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("deezer", f"Deezer API error: {e}") from e

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _parse_track(track: dict[str, Any], market: str) -> ProviderResult:
        return ProviderResult(
            provider=Provider.DEEZER,
            artist=track.get("artist", {}).get("name", ""),
            title=track.get("title", ""),
            url=track.get("link", ""),
            external_id=track.get("isrc") or "",
            art_url=track.get("album", {}).get("cover_xl"),
            market_region=market,
            is_album=False,
        )

    @staticmethod
    def _parse_album(album: dict[str, Any], market: str) -> ProviderResult:
        return ProviderResult(
            provider=Provider.DEEZER,
            artist=album.get("artist", {}).get("name", ""),
            title=album.get("title", ""),
            url=album.get("link", ""),
            external_id=album.get("upc") or "",
            art_url=album.get("cover_xl"),
            market_region=market,
            is_album=True,
        )
