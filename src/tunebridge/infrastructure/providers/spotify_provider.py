"""Spotify Music Provider implementation.

This adapter implements IMusicProvider on top of SpotifyClient and maps
Spotify's JSON onto ProviderResult.

Spotify JSON cheat sheet:
- track:  name, artists[].name, external_ids.isrc, external_urls.spotify, album.images[]
- album:  name, artists[].name, external_ids.upc (ONLY on /albums/{id}!), images[]

Search results for albums do NOT include external_ids, so a matched album
search hit is re-fetched via /albums/{id} to get its UPC.
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
from tunebridge.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


def _artist_names(item: dict[str, Any]) -> str:
    return ", ".join(artist.get("name", "") for artist in item.get("artists", []) if artist.get("name"))


def _largest_image(images: list[dict[str, Any]] | None) -> str | None:
    # Spotify orders images largest first
    if not images:
        return None
    return images[0].get("url")


class SpotifyMusicProvider(IMusicProvider):
    """Provider adapter for Spotify."""

    def __init__(self, client: SpotifyClient) -> None:
        """Initialize with Spotify client.

        Args:
            client: SpotifyClient for API calls
        """
        self._client = client

    @property
    def provider_type(self) -> Provider:
        return Provider.SPOTIFY

    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        try:
            if entity_kind == EntityKind.TRACK:
                track = await self._client.get_track(native_id, market)
                return self._parse_track(track, market) if track else None
            if entity_kind == EntityKind.ALBUM:
                album = await self._client.get_album(native_id, market)
                return self._parse_album(album, market) if album else None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("spotify", f"Spotify API error: {e}") from e

        logger.debug("Spotify lookup for %s not supported", entity_kind.value)
        return None

    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        try:
            if identifier_kind == IdentifierKind.ISRC:
                tracks = await self._client.search(f"isrc:{value}", "track", market, limit=1)
                return self._parse_track(tracks[0], market) if tracks else None

            albums = await self._client.search(f"upc:{value}", "album", market, limit=1)
            if not albums:
                return None
            return await self._full_album(albums[0], market)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("spotify", f"Spotify API error: {e}") from e

    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        search_type = "album" if is_album else "track"
        query = f'{search_type}:"{title}" artist:"{artist}"'
        try:
            items = await self._client.search(query, search_type, market, limit=10)
            if not items:
                return None

            # Prefer an exact (sanitized) title match, else trust Spotify's ranking
            best = next(
                (item for item in items if titles_match(item.get("name", ""), title, is_album)),
                items[0],
            )
            if is_album:
                return await self._full_album(best, market)
            return self._parse_track(best, market)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("spotify", f"Spotify API error: {e}") from e

    async def close(self) -> None:
        await self._client.close()

    async def _full_album(self, album: dict[str, Any], market: str) -> ProviderResult | None:
        if "external_ids" not in album and album.get("id"):
            full = await self._client.get_album(album["id"], market)
            if full:
                album = full
        return self._parse_album(album, market)

    @staticmethod
    def _parse_track(track: dict[str, Any], market: str) -> ProviderResult:
        return ProviderResult(
            provider=Provider.SPOTIFY,
            artist=_artist_names(track),
            title=track.get("name", ""),
            url=track.get("external_urls", {}).get("spotify", ""),
            external_id=track.get("external_ids", {}).get("isrc") or "",
            art_url=_largest_image(track.get("album", {}).get("images")),
            market_region=market,
            is_album=False,
        )

    @staticmethod
    def _parse_album(album: dict[str, Any], market: str) -> ProviderResult:
        return ProviderResult(
            provider=Provider.SPOTIFY,
            artist=_artist_names(album),
            title=album.get("name", ""),
            url=album.get("external_urls", {}).get("spotify", ""),
            external_id=album.get("external_ids", {}).get("upc") or "",
            art_url=_largest_image(album.get("images")),
            market_region=market,
            is_album=True,
        )
