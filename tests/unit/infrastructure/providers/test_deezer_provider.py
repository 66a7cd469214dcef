"""Tests for DeezerMusicProvider + DeezerClient against a mocked public API."""

from unittest.mock import AsyncMock

import httpx
import pytest
from fakes import ISRC, UPC
from pytest_mock import MockerFixture

from tunebridge.domain.entities import EntityKind, IdentifierKind, Provider
from tunebridge.domain.exceptions import ProviderUnavailableError, RateLimitExceededError
from tunebridge.infrastructure import rate_limiter
from tunebridge.infrastructure.integrations import DeezerClient
from tunebridge.infrastructure.providers import DeezerMusicProvider

# Hey future me - Deezer's quirks are what these tests are about:
# 1. "Not found" is a 200 with {"error": {"code": 800}}
# 2. Quota exceeded is a 200 with {"error": {"code": 4}}
# 3. Search hits have no isrc/upc, so the hit is re-fetched by id

TRACK = {
    "id": 3135556,
    "title": "Smells Like Teen Spirit",
    "isrc": ISRC,
    "link": "https://www.deezer.com/track/3135556",
    "artist": {"name": "Nirvana"},
    "album": {"cover_xl": "https://e-cdns-images.dzcdn.net/xl.jpg"},
}
ALBUM = {
    "id": 302127,
    "title": "Nevermind",
    "upc": UPC,
    "link": "https://www.deezer.com/album/302127",
    "artist": {"name": "Nirvana"},
    "cover_xl": "https://e-cdns-images.dzcdn.net/album-xl.jpg",
}
NOT_FOUND = {"error": {"type": "DataException", "message": "no data", "code": 800}}
QUOTA = {"error": {"type": "Exception", "message": "Quota limit exceeded", "code": 4}}


class DeezerApi:
    """Routes mocked requests by path; unknown paths answer Deezer's not-found body."""

    def __init__(self) -> None:
        self.routes: dict[str, list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path: str, *responses: httpx.Response) -> None:
        """Queue responses for a path; the last one repeats."""
        self.routes[path] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self.routes.get(request.url.path)
        if not queued:
            return httpx.Response(200, json=NOT_FOUND)
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )


@pytest.fixture(autouse=True)
def fresh_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each test gets its own limiter (bound to its own event loop)."""
    monkeypatch.setattr(rate_limiter, "_deezer_limiter", None)


@pytest.fixture
def api() -> DeezerApi:
    return DeezerApi()


@pytest.fixture
def provider(api: DeezerApi) -> DeezerMusicProvider:
    return DeezerMusicProvider(DeezerClient(transport=httpx.MockTransport(api)))


class TestLookups:
    """Test native and identifier lookups."""

    async def test_track_by_id(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test track JSON mapping."""
        api.on("/track/3135556", httpx.Response(200, json=TRACK))

        result = await provider.get_by_native_id(EntityKind.TRACK, "3135556", "de")

        assert result is not None
        assert result.provider == Provider.DEEZER
        assert result.artist == "Nirvana"
        assert result.title == "Smells Like Teen Spirit"
        assert result.url == "https://www.deezer.com/track/3135556"
        assert result.external_id == ISRC
        assert result.art_url == "https://e-cdns-images.dzcdn.net/xl.jpg"
        assert result.market_region == "de"
        assert result.is_album is False

    async def test_album_by_id(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test album JSON mapping."""
        api.on("/album/302127", httpx.Response(200, json=ALBUM))

        result = await provider.get_by_native_id(EntityKind.ALBUM, "302127", "us")

        assert result is not None
        assert result.is_album is True
        assert result.external_id == UPC
        assert result.art_url == "https://e-cdns-images.dzcdn.net/album-xl.jpg"

    async def test_track_by_isrc(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test the exact ISRC endpoint."""
        api.on(f"/track/isrc:{ISRC}", httpx.Response(200, json=TRACK))

        result = await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us")

        assert result is not None and result.external_id == ISRC

    async def test_album_by_upc(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test the exact UPC endpoint."""
        api.on(f"/album/upc:{UPC}", httpx.Response(200, json=ALBUM))

        result = await provider.get_by_identifier(IdentifierKind.UPC, UPC, "us")

        assert result is not None and result.title == "Nevermind"

    async def test_not_found_body_is_none(self, provider: DeezerMusicProvider) -> None:
        """Test that Deezer's 200-with-error-800 means 'not found'."""
        assert await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us") is None

    async def test_playlist_is_not_supported(
        self, api: DeezerApi, provider: DeezerMusicProvider
    ) -> None:
        """Test that playlists are skipped without any HTTP call."""
        assert await provider.get_by_native_id(EntityKind.PLAYLIST, "1", "us") is None
        assert api.requests == []


class TestSearch:
    """Test title/artist search."""

    async def test_search_refetches_best_hit(
        self, api: DeezerApi, provider: DeezerMusicProvider
    ) -> None:
        """Test that the exact title match is re-fetched to get its ISRC."""
        light_remix = {"id": 1, "title": "Smells Like Teen Spirit (Remix)"}
        light = {"id": 3135556, "title": "Smells Like Teen Spirit"}
        api.on("/search/track", httpx.Response(200, json={"data": [light_remix, light]}))
        api.on("/track/3135556", httpx.Response(200, json=TRACK))

        result = await provider.search_by_title_artist(
            "Smells Like Teen Spirit", "Nirvana", "us", is_album=False
        )

        assert result is not None and result.external_id == ISRC
        assert api.requests[0].url.params["q"] == (
            'artist:"Nirvana" track:"Smells Like Teen Spirit"'
        )
        assert api.requests[1].url.path == "/track/3135556"

    async def test_album_search(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test album search hits the album endpoint."""
        hits = {"data": [{"id": 302127, "title": "Nevermind"}]}
        api.on("/search/album", httpx.Response(200, json=hits))
        api.on("/album/302127", httpx.Response(200, json=ALBUM))

        result = await provider.search_by_title_artist("Nevermind", "Nirvana", "us", is_album=True)

        assert result is not None and result.external_id == UPC

    async def test_empty_search(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test that no hits is None."""
        api.on("/search/track", httpx.Response(200, json={"data": [], "total": 0}))

        assert await provider.search_by_title_artist("x", "y", "us") is None


class TestFailures:
    """Test error handling."""

    async def test_http_error_is_provider_unavailable(
        self, api: DeezerApi, provider: DeezerMusicProvider
    ) -> None:
        """Test that a 5xx becomes ProviderUnavailableError."""
        api.on("/track/1", httpx.Response(502))

        with pytest.raises(ProviderUnavailableError):
            await provider.get_by_native_id(EntityKind.TRACK, "1", "us")

    async def test_invalid_json(self, api: DeezerApi, provider: DeezerMusicProvider) -> None:
        """Test that an HTML error page is ProviderUnavailableError."""
        api.on("/track/1", httpx.Response(200, content=b"<html>maintenance</html>"))

        with pytest.raises(ProviderUnavailableError):
            await provider.get_by_native_id(EntityKind.TRACK, "1", "us")

    async def test_quota_error_is_retried(
        self, api: DeezerApi, provider: DeezerMusicProvider, mocker: MockerFixture
    ) -> None:
        """Test that a quota error backs off and retries."""
        backoff = mocker.patch.object(
            rate_limiter.RateLimiter,
            "handle_rate_limit_response",
            new=AsyncMock(return_value=0.0),
        )
        api.on(
            "/track/3135556",
            httpx.Response(200, json=QUOTA),
            httpx.Response(200, json=TRACK),
        )

        result = await provider.get_by_native_id(EntityKind.TRACK, "3135556", "us")

        assert result is not None
        assert backoff.await_count == 1

    async def test_quota_exhausted(
        self, api: DeezerApi, provider: DeezerMusicProvider, mocker: MockerFixture
    ) -> None:
        """Test that a persistent quota error raises RateLimitExceededError."""
        mocker.patch.object(
            rate_limiter.RateLimiter,
            "handle_rate_limit_response",
            new=AsyncMock(return_value=0.0),
        )
        api.on("/track/3135556", httpx.Response(200, json=QUOTA))

        with pytest.raises(RateLimitExceededError):
            await provider.get_by_native_id(EntityKind.TRACK, "3135556", "us")
        assert len(api.requests) == 3
