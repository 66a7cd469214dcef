"""Apple Music Provider implementation.

Apple JSON cheat sheet (resource = data[n]):
- song:  attributes.name, artistName, url, isrc, artwork.url
- album: attributes.name, artistName, url, upc, artwork.url

Artwork URLs are templates like ".../{w}x{h}bb.jpg" - the placeholders are
filled with the artwork's own width/height (largest rendition).

Apple's search is a free-text term, not field filters like Spotify's, so a hit
only counts when its artist matches too.
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
from tunebridge.infrastructure.integrations.apple_music_client import AppleMusicClient

logger = logging.getLogger(__name__)

DEFAULT_ARTWORK_SIZE = 1000


def _artwork_url(attributes: dict[str, Any]) -> str | None:
    artwork = attributes.get("artwork") or {}
    template = artwork.get("url")
    if not template:
        return None
    return template.replace("{w}", str(artwork.get("width") or DEFAULT_ARTWORK_SIZE)).replace(
        "{h}", str(artwork.get("height") or DEFAULT_ARTWORK_SIZE)
    )


def _artist_matches(resource: dict[str, Any], artist: str) -> bool:
    found = resource.get("attributes", {}).get("artistName", "").casefold()
    wanted = artist.casefold()
    return bool(found) and (wanted in found or found in wanted)


class AppleMusicProvider(IMusicProvider):
    """Provider adapter for Apple Music."""

    def __init__(self, client: AppleMusicClient) -> None:
        """Initialize with Apple Music client.

        Args:
            client: AppleMusicClient for API calls
        """
        self._client = client

    @property
    def provider_type(self) -> Provider:
        return Provider.APPLE_MUSIC

    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        try:
            if entity_kind == EntityKind.TRACK:
                song = await self._client.get_song(market, native_id)
                return self._parse(song, market, is_album=False) if song else None
            if entity_kind == EntityKind.ALBUM:
                album = await self._client.get_album(market, native_id)
                return self._parse(album, market, is_album=True) if album else None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("appleMusic", f"Apple Music API error: {e}") from e

        logger.debug("Apple Music lookup for %s not supported", entity_kind.value)
        return None

    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        try:
            if identifier_kind == IdentifierKind.ISRC:
                songs = await self._client.get_songs_by_isrc(market, value)
                return self._parse(songs[0], market, is_album=False) if songs else None
            albums = await self._client.get_albums_by_upc(market, value)
            return self._parse(albums[0], market, is_album=True) if albums else None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("appleMusic", f"Apple Music API error: {e}") from e

    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        search_type = "albums" if is_album else "songs"
        try:
            items = await self._client.search(market, f"{artist} {title}", search_type)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("appleMusic", f"Apple Music API error: {e}") from e

        candidates = [item for item in items if _artist_matches(item, artist)]
        if not candidates:
            return None
        best = next(
            (
                item
                for item in candidates
                if titles_match(item.get("attributes", {}).get("name", ""), title, is_album)
            ),
            candidates[0],
        )
        return self._parse(best, market, is_album=bool(is_album))

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _parse(resource: dict[str, Any], market: str, is_album: bool) -> ProviderResult:
        attributes = resource.get("attributes", {})
        return ProviderResult(
            provider=Provider.APPLE_MUSIC,
            artist=attributes.get("artistName", ""),
            title=attributes.get("name", ""),
            url=attributes.get("url", ""),
            external_id=attributes.get("upc" if is_album else "isrc") or "",
            art_url=_artwork_url(attributes),
            market_region=market,
            is_album=is_album,
        )
