"""Tidal Music Provider implementation.

Tidal JSON cheat sheet (JSON:API, see TidalClient):
- track:  attributes.title, attributes.isrc, attributes.externalLinks[].href,
          relationships.artists / relationships.albums -> included
- album:  attributes.title, attributes.barcodeId, attributes.externalLinks[].href,
          relationships.artists / relationships.coverArt -> included artworks

A track document doesn't carry artwork, so the cover comes from a follow-up
album lookup (one extra call per track).

Search hits only have titles, so the best few are re-fetched by id and the
first whose artist matches wins.
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
from tunebridge.infrastructure.integrations.tidal_client import TidalClient

logger = logging.getLogger(__name__)

# Full lookups spent on search hits before giving up
MAX_SEARCH_CANDIDATES = 3


# =============================================================================
# JSON:API HELPERS
# =============================================================================


def _primary(document: dict[str, Any]) -> dict[str, Any] | None:
    data = document.get("data")
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _included(document: dict[str, Any], resource_type: str) -> list[dict[str, Any]]:
    return [item for item in document.get("included", []) if item.get("type") == resource_type]


def _related_ids(resource: dict[str, Any], relationship: str) -> list[str]:
    linkage = resource.get("relationships", {}).get(relationship, {}).get("data") or []
    return [str(item["id"]) for item in linkage if item.get("id")]


def _artist_names(resource: dict[str, Any], document: dict[str, Any]) -> str:
    names = {
        str(artist.get("id")): artist.get("attributes", {}).get("name", "")
        for artist in _included(document, "artists")
    }
    return ", ".join(
        names[artist_id] for artist_id in _related_ids(resource, "artists") if names.get(artist_id)
    )


def _share_url(resource: dict[str, Any], kind: str) -> str:
    for link in resource.get("attributes", {}).get("externalLinks", []):
        if link.get("href"):
            return str(link["href"])
    return f"https://tidal.com/browse/{kind}/{resource.get('id', '')}"


def _cover_art(album: dict[str, Any], document: dict[str, Any]) -> str | None:
    wanted = set(_related_ids(album, "coverArt"))
    for artwork in _included(document, "artworks"):
        if wanted and str(artwork.get("id")) not in wanted:
            continue
        files = artwork.get("attributes", {}).get("files") or []
        if files:
            largest = max(files, key=lambda f: f.get("meta", {}).get("width", 0))
            return largest.get("href")
    return None


class TidalMusicProvider(IMusicProvider):
    """Provider adapter for Tidal."""

    def __init__(self, client: TidalClient) -> None:
        """Initialize with Tidal client.

        Args:
            client: TidalClient for API calls
        """
        self._client = client

    @property
    def provider_type(self) -> Provider:
        return Provider.TIDAL

    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        try:
            if entity_kind == EntityKind.TRACK:
                return await self._track(await self._client.get_track(native_id, market), market)
            if entity_kind == EntityKind.ALBUM:
                return self._album(await self._client.get_album(native_id, market), market)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("tidal", f"Tidal API error: {e}") from e

        logger.debug("Tidal lookup for %s not supported", entity_kind.value)
        return None

    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        try:
            if identifier_kind == IdentifierKind.ISRC:
                return await self._track(
                    await self._client.get_tracks_by_isrc(value, market), market
                )
            return self._album(await self._client.get_albums_by_barcode(value, market), market)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("tidal", f"Tidal API error: {e}") from e

    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        resource_type = "albums" if is_album else "tracks"
        try:
            document = await self._client.search(f"{artist} {title}", market)
            if not document:
                return None

            hits = _included(document, resource_type)
            exact = [
                hit
                for hit in hits
                if titles_match(hit.get("attributes", {}).get("title", ""), title, is_album)
            ]
            for hit in (exact or hits)[:MAX_SEARCH_CANDIDATES]:
                result = await self.get_by_native_id(
                    EntityKind.ALBUM if is_album else EntityKind.TRACK, str(hit["id"]), market
                )
                if result and artist.casefold() in result.artist.casefold():
                    return result
            return None
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("tidal", f"Tidal API error: {e}") from e

    async def close(self) -> None:
        await self._client.close()

    async def _track(self, document: dict[str, Any] | None, market: str) -> ProviderResult | None:
        if not document:
            return None
        track = _primary(document)
        if track is None:
            return None

        art_url = None
        album_ids = _related_ids(track, "albums")
        if album_ids:
            album_document = await self._client.get_album(album_ids[0], market)
            album = _primary(album_document) if album_document else None
            if album is not None and album_document is not None:
                art_url = _cover_art(album, album_document)

        return ProviderResult(
            provider=Provider.TIDAL,
            artist=_artist_names(track, document),
            title=track.get("attributes", {}).get("title", ""),
            url=_share_url(track, "track"),
            external_id=track.get("attributes", {}).get("isrc") or "",
            art_url=art_url,
            market_region=market,
            is_album=False,
        )

    @staticmethod
    def _album(document: dict[str, Any] | None, market: str) -> ProviderResult | None:
        if not document:
            return None
        album = _primary(document)
        if album is None:
            return None
        return ProviderResult(
            provider=Provider.TIDAL,
            artist=_artist_names(album, document),
            title=album.get("attributes", {}).get("title", ""),
            url=_share_url(album, "album"),
            external_id=album.get("attributes", {}).get("barcodeId") or "",
            art_url=_cover_art(album, document),
            market_region=market,
            is_album=True,
        )
