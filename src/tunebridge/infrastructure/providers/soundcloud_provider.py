"""SoundCloud Music Provider implementation.

SoundCloud JSON cheat sheet:
- track:    title, user.username, permalink_url, artwork_url, publisher_metadata.isrc
- playlist: same fields, kind == "playlist" (sets are treated as albums)

Artwork URLs point at the 100x100 "-large" rendition; swapping the suffix for
"-t500x500" gets the 500px one.

The public API has no identifier lookups, so ISRC/UPC queries return None and
SoundCloud only shows up in cross-references through title/artist search.
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
from tunebridge.infrastructure.integrations.soundcloud_client import SoundCloudClient

logger = logging.getLogger(__name__)


def _large_artwork(resource: dict[str, Any]) -> str | None:
    artwork = resource.get("artwork_url") or resource.get("user", {}).get("avatar_url")
    return artwork.replace("-large", "-t500x500") if artwork else None


class SoundCloudMusicProvider(IMusicProvider):
    """Provider adapter for SoundCloud."""

    def __init__(self, client: SoundCloudClient) -> None:
        """Initialize with SoundCloud client.

        Args:
            client: SoundCloudClient for API calls
        """
        self._client = client

    @property
    def provider_type(self) -> Provider:
        return Provider.SOUNDCLOUD

    async def get_by_native_id(
        self, entity_kind: EntityKind, native_id: str, market: str
    ) -> ProviderResult | None:
        if entity_kind not in (EntityKind.TRACK, EntityKind.PLAYLIST):
            logger.debug("SoundCloud lookup for %s not supported", entity_kind.value)
            return None

        try:
            resource = await self._client.resolve(native_id)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("soundCloud", f"SoundCloud API error: {e}") from e
        if not resource:
            return None
        return self._parse(resource, market)

    async def get_by_identifier(
        self, identifier_kind: IdentifierKind, value: str, market: str
    ) -> ProviderResult | None:
        logger.debug("SoundCloud has no %s lookup", identifier_kind.value)
        return None

    async def search_by_title_artist(
        self,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        # Only tracks are searchable; a track hit must never stand in for an album
        if is_album:
            return None

        try:
            tracks = await self._client.search_tracks(f"{artist} {title}")
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError("soundCloud", f"SoundCloud API error: {e}") from e
        if not tracks:
            return None

        best = next(
            (track for track in tracks if titles_match(track.get("title", ""), title, False)),
            tracks[0],
        )
        return self._parse(best, market)

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _parse(resource: dict[str, Any], market: str) -> ProviderResult:
        is_album = resource.get("kind") == "playlist"
        isrc = (resource.get("publisher_metadata") or {}).get("isrc")
        return ProviderResult(
            provider=Provider.SOUNDCLOUD,
            artist=resource.get("user", {}).get("username", ""),
            title=resource.get("title", ""),
            url=resource.get("permalink_url", ""),
            external_id="" if is_album else (isrc or ""),
            art_url=_large_artwork(resource),
            market_region=market,
            is_album=is_album,
        )
