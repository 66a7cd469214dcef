"""Tests for SpotifyMusicProvider + SpotifyClient against a mocked Web API."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from fakes import ISRC, UPC
from pytest_mock import MockerFixture

from tunebridge.config import SpotifySettings
from tunebridge.domain.entities import EntityKind, IdentifierKind, Provider
from tunebridge.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ProviderUnavailableError,
    RateLimitExceededError,
)
from tunebridge.infrastructure import rate_limiter
from tunebridge.infrastructure.integrations import SpotifyClient
from tunebridge.infrastructure.providers import SpotifyMusicProvider

# Hey future me - these tests run the REAL client code over httpx.MockTransport:
# 1. Token fetch (client credentials) and reuse
# 2. Mapping of track/album JSON onto ProviderResult
# 3. 401 -> token refresh, 429 -> Retry-After, 5xx -> ProviderUnavailableError

TRACK = {
    "id": "abc123",
    "name": "Smells Like Teen Spirit",
    "artists": [{"name": "Nirvana"}],
    "external_ids": {"isrc": ISRC},
    "external_urls": {"spotify": "https://open.spotify.com/track/abc123"},
    "album": {"images": [{"url": "https://i.scdn.co/large.jpg"}, {"url": "small.jpg"}]},
}

ALBUM_LIGHT = {
    "id": "alb1",
    "name": "Nevermind",
    "artists": [{"name": "Nirvana"}],
    "external_urls": {"spotify": "https://open.spotify.com/album/alb1"},
    "images": [],
}
ALBUM_FULL = {**ALBUM_LIGHT, "external_ids": {"upc": UPC}}


class SpotifyApi:
    """Routes mocked requests and records what was asked."""

    def __init__(self) -> None:
        self.routes: dict[str, list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.token_response = httpx.Response(
            200, json={"access_token": "tok", "expires_in": 3600}
        )

    def on(self, path: str, *responses: httpx.Response) -> None:
        """Queue responses for a path; the last one repeats."""
        self.routes[path] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            self.token_calls += 1
            return _copy(self.token_response)

        self.requests.append(request)
        queued = self.routes.get(request.url.path)
        if not queued:
            return httpx.Response(404, json={"error": {"status": 404}})
        return _copy(queued.pop(0) if len(queued) > 1 else queued[0])


def _copy(response: httpx.Response) -> httpx.Response:
    # A Response can only be sent once
    return httpx.Response(
        response.status_code, headers=response.headers, content=response.content
    )


@pytest.fixture(autouse=True)
def fresh_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each test gets its own limiter (bound to its own event loop)."""
    monkeypatch.setattr(rate_limiter, "_spotify_limiter", None)


@pytest.fixture
def api() -> SpotifyApi:
    return SpotifyApi()


@pytest.fixture
def provider(api: SpotifyApi) -> SpotifyMusicProvider:
    settings = SpotifySettings(client_id="id", client_secret="secret")
    return SpotifyMusicProvider(SpotifyClient(settings, transport=httpx.MockTransport(api)))


class TestNativeLookups:
    """Test lookups by Spotify id."""

    async def test_track(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test track JSON mapping and request shape."""
        api.on("/v1/tracks/abc123", httpx.Response(200, json=TRACK))

        result = await provider.get_by_native_id(EntityKind.TRACK, "abc123", "gb")

        assert result is not None
        assert result.provider == Provider.SPOTIFY
        assert result.artist == "Nirvana"
        assert result.title == "Smells Like Teen Spirit"
        assert result.url == "https://open.spotify.com/track/abc123"
        assert result.external_id == ISRC
        assert result.art_url == "https://i.scdn.co/large.jpg"
        assert result.market_region == "gb"
        assert result.is_album is False

        request = api.requests[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["market"] == "GB"

    async def test_album(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test album JSON mapping."""
        api.on("/v1/albums/alb1", httpx.Response(200, json=ALBUM_FULL))

        result = await provider.get_by_native_id(EntityKind.ALBUM, "alb1", "us")

        assert result is not None
        assert result.is_album is True
        assert result.external_id == UPC
        assert result.art_url is None

    async def test_multiple_artists_are_joined(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that featured artists end up in one artist string."""
        track = {**TRACK, "artists": [{"name": "Daft Punk"}, {"name": "Pharrell Williams"}]}
        api.on("/v1/tracks/abc123", httpx.Response(200, json=track))

        result = await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        assert result is not None
        assert result.artist == "Daft Punk, Pharrell Williams"

    async def test_unknown_id_is_none(self, provider: SpotifyMusicProvider) -> None:
        """Test that a 404 is 'not found', not an error."""
        assert await provider.get_by_native_id(EntityKind.TRACK, "nope", "us") is None

    async def test_playlist_is_not_supported(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that playlists are skipped without any HTTP call."""
        assert await provider.get_by_native_id(EntityKind.PLAYLIST, "pl1", "us") is None
        assert api.requests == []

    async def test_token_is_reused(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test that the app token is fetched once and cached."""
        api.on("/v1/tracks/abc123", httpx.Response(200, json=TRACK))

        await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")
        await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        assert api.token_calls == 1


class TestIdentifierLookups:
    """Test ISRC/UPC lookups via search filters."""

    async def test_isrc(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test ISRC lookup uses an isrc: search filter."""
        api.on("/v1/search", httpx.Response(200, json={"tracks": {"items": [TRACK]}}))

        result = await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us")

        assert result is not None and result.external_id == ISRC
        params = api.requests[0].url.params
        assert params["q"] == f"isrc:{ISRC}"
        assert params["type"] == "track"
        assert params["limit"] == "1"

    async def test_isrc_not_found(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test that an empty search is None."""
        api.on("/v1/search", httpx.Response(200, json={"tracks": {"items": []}}))

        assert await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us") is None

    async def test_upc_refetches_album_for_identifier(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Album search hits carry no external_ids, so the album is fetched in full."""
        api.on("/v1/search", httpx.Response(200, json={"albums": {"items": [ALBUM_LIGHT]}}))
        api.on("/v1/albums/alb1", httpx.Response(200, json=ALBUM_FULL))

        result = await provider.get_by_identifier(IdentifierKind.UPC, UPC, "us")

        assert result is not None
        assert result.external_id == UPC
        assert [r.url.path for r in api.requests] == ["/v1/search", "/v1/albums/alb1"]
        assert api.requests[0].url.params["q"] == f"upc:{UPC}"


class TestSearch:
    """Test title/artist search."""

    async def test_prefers_exact_title_match(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that a sanitized exact match beats Spotify's first hit."""
        remix = {**TRACK, "id": "remix", "name": "Smells Like Teen Spirit (Remix)"}
        api.on("/v1/search", httpx.Response(200, json={"tracks": {"items": [remix, TRACK]}}))

        result = await provider.search_by_title_artist(
            "Smells Like Teen Spirit", "Nirvana", "us", is_album=False
        )

        assert result is not None
        assert result.title == "Smells Like Teen Spirit"
        assert api.requests[0].url.params["q"] == 'track:"Smells Like Teen Spirit" artist:"Nirvana"'

    async def test_falls_back_to_first_hit(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that without an exact match the top-ranked hit is used."""
        remix = {**TRACK, "name": "Smells Like Teen Spirit (Remix)"}
        api.on("/v1/search", httpx.Response(200, json={"tracks": {"items": [remix]}}))

        result = await provider.search_by_title_artist("Smells Like Teen Spirit", "Nirvana", "us")

        assert result is not None and result.title == "Smells Like Teen Spirit (Remix)"

    async def test_album_search(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test album search uses the album filter and refetches the hit."""
        api.on("/v1/search", httpx.Response(200, json={"albums": {"items": [ALBUM_LIGHT]}}))
        api.on("/v1/albums/alb1", httpx.Response(200, json=ALBUM_FULL))

        result = await provider.search_by_title_artist("Nevermind", "Nirvana", "us", is_album=True)

        assert result is not None and result.is_album is True
        assert api.requests[0].url.params["type"] == "album"


class TestFailures:
    """Test HTTP failure handling."""

    async def test_server_error_is_provider_unavailable(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that a 5xx becomes ProviderUnavailableError."""
        api.on("/v1/tracks/abc123", httpx.Response(503))

        with pytest.raises(ProviderUnavailableError):
            await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

    async def test_expired_token_is_refreshed_once(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that a 401 drops the cached token and retries."""
        api.on(
            "/v1/tracks/abc123",
            httpx.Response(401),
            httpx.Response(200, json=TRACK),
        )

        result = await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        assert result is not None
        assert api.token_calls == 2

    async def test_rate_limit_retry_honours_retry_after(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that a 429 is retried after the advertised delay."""
        api.on(
            "/v1/tracks/abc123",
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json=TRACK),
        )

        result = await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        assert result is not None
        assert len(api.requests) == 2

    async def test_rate_limit_retry_after_as_http_date(
        self, api: SpotifyApi, provider: SpotifyMusicProvider, mocker: MockerFixture
    ) -> None:
        """Test that a Retry-After HTTP-date is waited out instead of crashing the lookup."""
        backoff = mocker.patch.object(
            rate_limiter.RateLimiter,
            "handle_rate_limit_response",
            new=AsyncMock(return_value=0.0),
        )
        api.on(
            "/v1/tracks/abc123",
            httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2099 07:28:00 GMT"}),
            httpx.Response(200, json=TRACK),
        )

        result = await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        assert result is not None
        assert len(api.requests) == 2
        backoff.assert_awaited_once()
        (seconds,) = backoff.await_args.args
        assert isinstance(seconds, int)
        assert seconds > 0

    async def test_rate_limit_exhausted(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that persistent 429s raise RateLimitExceededError."""
        api.on("/v1/tracks/abc123", httpx.Response(429, headers={"Retry-After": "0"}))

        with pytest.raises(RateLimitExceededError) as exc_info:
            await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        assert exc_info.value.retry_after == 0
        assert len(api.requests) == 3

    async def test_rejected_credentials(
        self, api: SpotifyApi, provider: SpotifyMusicProvider
    ) -> None:
        """Test that a rejected client secret is an AuthenticationError."""
        api.token_response = httpx.Response(400, content=json.dumps({"error": "invalid_client"}))

        with pytest.raises(AuthenticationError):
            await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

    async def test_missing_credentials(self, api: SpotifyApi) -> None:
        """Test that an unconfigured client fails before any request."""
        client = SpotifyClient(SpotifySettings(), transport=httpx.MockTransport(api))

        with pytest.raises(ConfigurationError):
            await SpotifyMusicProvider(client).get_by_native_id(EntityKind.TRACK, "x", "us")
        assert api.token_calls == 0

    async def test_close_closes_client(self, api: SpotifyApi, provider: SpotifyMusicProvider) -> None:
        """Test that closing the adapter releases the HTTP client."""
        api.on("/v1/tracks/abc123", httpx.Response(200, json=TRACK))
        await provider.get_by_native_id(EntityKind.TRACK, "abc123", "us")

        await provider.close()

        assert provider._client._client is None
