"""Tests for AppleMusicProvider + AppleMusicClient against a mocked catalog API."""

from pathlib import Path

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fakes import ISRC, UPC

from tunebridge.config import AppleMusicSettings
from tunebridge.domain.entities import EntityKind, IdentifierKind, Provider
from tunebridge.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ProviderUnavailableError,
)
from tunebridge.infrastructure import rate_limiter
from tunebridge.infrastructure.integrations import AppleMusicClient
from tunebridge.infrastructure.providers import AppleMusicProvider

# Hey future me - the developer token is signed for real with a throwaway P-256 key,
# so the JWT assertions below check exactly what Apple would verify.

CATALOG = "/v1/catalog"

SONG = {
    "id": "1440783617",
    "type": "songs",
    "attributes": {
        "name": "Smells Like Teen Spirit",
        "artistName": "Nirvana",
        "url": "https://music.apple.com/us/album/nevermind/1440783225?i=1440783617",
        "isrc": ISRC,
        "artwork": {
            "url": "https://is1-ssl.mzstatic.com/image/thumb/{w}x{h}bb.jpg",
            "width": 3000,
            "height": 3000,
        },
    },
}

ALBUM = {
    "id": "1440783225",
    "type": "albums",
    "attributes": {
        "name": "Nevermind",
        "artistName": "Nirvana",
        "url": "https://music.apple.com/us/album/nevermind/1440783225",
        "upc": UPC,
        "artwork": {"url": "https://is1-ssl.mzstatic.com/image/thumb/{w}x{h}bb.jpg"},
    },
}


def _song(song_id: str, name: str, artist: str) -> dict:
    return {"id": song_id, "type": "songs", "attributes": {"name": name, "artistName": artist}}


class AppleApi:
    """Routes mocked catalog requests and records what was asked."""

    def __init__(self) -> None:
        self.routes: dict[str, list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path: str, *responses: httpx.Response) -> None:
        """Queue responses for a catalog path; the last one repeats."""
        self.routes[f"{CATALOG}{path}"] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self.routes.get(request.url.path)
        if not queued:
            return httpx.Response(404, json={"errors": [{"status": "404"}]})
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )

    def token(self, index: int = 0) -> str:
        return self.requests[index].headers["Authorization"].removeprefix("Bearer ")


@pytest.fixture(autouse=True)
def fresh_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each test gets its own limiter (bound to its own event loop)."""
    monkeypatch.setattr(rate_limiter, "_apple_music_limiter", None)


@pytest.fixture(scope="module")
def signing_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="module")
def private_key_pem(signing_key: ec.EllipticCurvePrivateKey) -> str:
    return signing_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def api() -> AppleApi:
    return AppleApi()


@pytest.fixture
def settings(private_key_pem: str) -> AppleMusicSettings:
    return AppleMusicSettings(team_id="TEAM123456", key_id="KEY1234567", private_key=private_key_pem)


@pytest.fixture
def provider(api: AppleApi, settings: AppleMusicSettings) -> AppleMusicProvider:
    return AppleMusicProvider(AppleMusicClient(settings, transport=httpx.MockTransport(api)))


class TestNativeLookups:
    """Test lookups by Apple catalog id."""

    async def test_song(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Test song JSON mapping with the storefront taken from the market."""
        api.on("/gb/songs/1440783617", httpx.Response(200, json={"data": [SONG]}))

        result = await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "gb")

        assert result is not None
        assert result.provider == Provider.APPLE_MUSIC
        assert result.artist == "Nirvana"
        assert result.title == "Smells Like Teen Spirit"
        assert result.url == SONG["attributes"]["url"]
        assert result.external_id == ISRC
        assert result.art_url == "https://is1-ssl.mzstatic.com/image/thumb/3000x3000bb.jpg"
        assert result.market_region == "gb"
        assert result.is_album is False

    async def test_album_artwork_without_size_uses_default(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test album mapping and the artwork template fallback size."""
        api.on("/us/albums/1440783225", httpx.Response(200, json={"data": [ALBUM]}))

        result = await provider.get_by_native_id(EntityKind.ALBUM, "1440783225", "us")

        assert result is not None
        assert result.is_album is True
        assert result.external_id == UPC
        assert result.art_url == "https://is1-ssl.mzstatic.com/image/thumb/1000x1000bb.jpg"

    async def test_unknown_id_is_none(self, provider: AppleMusicProvider) -> None:
        """Test that a 404 is 'not found', not an error."""
        assert await provider.get_by_native_id(EntityKind.TRACK, "0", "us") is None

    async def test_playlist_is_not_supported(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that playlists are skipped without any HTTP call."""
        assert await provider.get_by_native_id(EntityKind.PLAYLIST, "pl.1", "us") is None
        assert api.requests == []


class TestDeveloperToken:
    """Test the ES256 developer token sent with every request."""

    async def test_token_is_signed_for_the_team(
        self,
        api: AppleApi,
        provider: AppleMusicProvider,
        signing_key: ec.EllipticCurvePrivateKey,
    ) -> None:
        """Test the JWT header and claims Apple checks."""
        api.on("/us/songs/1440783617", httpx.Response(200, json={"data": [SONG]}))

        await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")

        token = api.token()
        header = jwt.get_unverified_header(token)
        assert header["alg"] == "ES256"
        assert header["kid"] == "KEY1234567"
        claims = jwt.decode(token, signing_key.public_key(), algorithms=["ES256"])
        assert claims["iss"] == "TEAM123456"
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    async def test_token_is_reused(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Test that the token is minted once and cached."""
        api.on("/us/songs/1440783617", httpx.Response(200, json={"data": [SONG]}))

        await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")
        await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")

        assert api.token(0) == api.token(1)

    async def test_rejected_token_is_reminted_once(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that a 401 drops the cached token and retries."""
        api.on(
            "/us/songs/1440783617",
            httpx.Response(401),
            httpx.Response(200, json={"data": [SONG]}),
        )

        result = await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")

        assert result is not None
        assert len(api.requests) == 2

    async def test_token_rejected_twice(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that a freshly minted token being rejected is an AuthenticationError."""
        api.on("/us/songs/1440783617", httpx.Response(403))

        with pytest.raises(AuthenticationError):
            await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")
        assert len(api.requests) == 2

    async def test_key_read_from_file(
        self, api: AppleApi, private_key_pem: str, tmp_path: Path
    ) -> None:
        """Test that the .p8 key can be given as a path."""
        key_file = tmp_path / "AuthKey_KEY1234567.p8"
        key_file.write_text(private_key_pem)
        settings = AppleMusicSettings(
            team_id="TEAM123456", key_id="KEY1234567", private_key_path=str(key_file)
        )
        api.on("/us/songs/1440783617", httpx.Response(200, json={"data": [SONG]}))
        provider = AppleMusicProvider(AppleMusicClient(settings, transport=httpx.MockTransport(api)))

        assert await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us") is not None

    async def test_missing_key_file(self, api: AppleApi) -> None:
        """Test that an unreadable key path is a ConfigurationError."""
        settings = AppleMusicSettings(
            team_id="TEAM123456", key_id="KEY1234567", private_key_path="/nonexistent/key.p8"
        )
        client = AppleMusicClient(settings, transport=httpx.MockTransport(api))

        with pytest.raises(ConfigurationError):
            await AppleMusicProvider(client).get_by_native_id(EntityKind.TRACK, "1", "us")
        assert api.requests == []

    async def test_garbage_key(self, api: AppleApi) -> None:
        """Test that a key that can't sign ES256 is an AuthenticationError."""
        settings = AppleMusicSettings(team_id="T", key_id="K", private_key="not a pem key")
        client = AppleMusicClient(settings, transport=httpx.MockTransport(api))

        with pytest.raises(AuthenticationError):
            await AppleMusicProvider(client).get_by_native_id(EntityKind.TRACK, "1", "us")
        assert api.requests == []

    async def test_missing_configuration(self, api: AppleApi) -> None:
        """Test that an unconfigured client fails before any request."""
        client = AppleMusicClient(AppleMusicSettings(), transport=httpx.MockTransport(api))

        with pytest.raises(ConfigurationError):
            await AppleMusicProvider(client).get_by_native_id(EntityKind.TRACK, "1", "us")
        assert api.requests == []


class TestIdentifierLookups:
    """Test ISRC/UPC lookups via catalog filters."""

    async def test_isrc_takes_first_song(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that an ISRC shared by several releases returns the first."""
        other = {**SONG, "id": "2", "attributes": {**SONG["attributes"], "name": "Other"}}
        api.on("/us/songs", httpx.Response(200, json={"data": [SONG, other]}))

        result = await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us")

        assert result is not None
        assert result.title == "Smells Like Teen Spirit"
        assert api.requests[0].url.params["filter[isrc]"] == ISRC

    async def test_upc(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Test UPC lookup uses the albums filter."""
        api.on("/de/albums", httpx.Response(200, json={"data": [ALBUM]}))

        result = await provider.get_by_identifier(IdentifierKind.UPC, UPC, "de")

        assert result is not None
        assert result.is_album is True
        assert result.external_id == UPC
        assert api.requests[0].url.params["filter[upc]"] == UPC

    async def test_not_found(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Test that an empty data list is None."""
        api.on("/us/songs", httpx.Response(200, json={"data": []}))

        assert await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us") is None


class TestSearch:
    """Test title/artist search."""

    async def test_other_artists_are_filtered_out(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that a cover by another artist is never picked."""
        cover = _song("9", "Smells Like Teen Spirit", "Tori Amos")
        original = _song("1", "Smells Like Teen Spirit (Remastered)", "Nirvana")
        api.on(
            "/us/search",
            httpx.Response(200, json={"results": {"songs": {"data": [cover, original]}}}),
        )

        result = await provider.search_by_title_artist("Smells Like Teen Spirit", "Nirvana", "us")

        assert result is not None
        assert result.artist == "Nirvana"
        params = api.requests[0].url.params
        assert params["term"] == "Nirvana Smells Like Teen Spirit"
        assert params["types"] == "songs"

    async def test_prefers_exact_title_match(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that an exact title beats the first hit by the same artist."""
        live = _song("2", "Lithium (Live at Reading)", "Nirvana")
        studio = _song("3", "Lithium", "Nirvana")
        api.on(
            "/us/search",
            httpx.Response(200, json={"results": {"songs": {"data": [live, studio]}}}),
        )

        result = await provider.search_by_title_artist("Lithium", "nirvana", "us")

        assert result is not None
        assert result.title == "Lithium"

    async def test_album_search(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Test that album searches ask for albums."""
        api.on("/us/search", httpx.Response(200, json={"results": {"albums": {"data": [ALBUM]}}}))

        result = await provider.search_by_title_artist("Nevermind", "Nirvana", "us", is_album=True)

        assert result is not None
        assert result.is_album is True
        assert api.requests[0].url.params["types"] == "albums"

    async def test_no_artist_match_is_none(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that hits by other artists only give None."""
        api.on(
            "/us/search",
            httpx.Response(
                200, json={"results": {"songs": {"data": [_song("9", "Lithium", "Evanescence")]}}}
            ),
        )

        assert await provider.search_by_title_artist("Lithium", "Nirvana", "us") is None

    async def test_empty_results(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Apple omits the type key entirely when nothing matched."""
        api.on("/us/search", httpx.Response(200, json={"results": {}}))

        assert await provider.search_by_title_artist("Lithium", "Nirvana", "us") is None


class TestFailures:
    """Test HTTP failure handling."""

    async def test_server_error_is_provider_unavailable(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that a 5xx becomes ProviderUnavailableError."""
        api.on("/us/songs", httpx.Response(500))

        with pytest.raises(ProviderUnavailableError):
            await provider.get_by_identifier(IdentifierKind.ISRC, ISRC, "us")

    async def test_rate_limit_is_retried(
        self, api: AppleApi, provider: AppleMusicProvider
    ) -> None:
        """Test that a 429 is retried after Retry-After."""
        api.on(
            "/us/songs/1440783617",
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={"data": [SONG]}),
        )

        result = await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")

        assert result is not None
        assert len(api.requests) == 2

    async def test_close_closes_client(self, api: AppleApi, provider: AppleMusicProvider) -> None:
        """Test that closing the adapter releases the HTTP client."""
        api.on("/us/songs/1440783617", httpx.Response(200, json={"data": [SONG]}))
        await provider.get_by_native_id(EntityKind.TRACK, "1440783617", "us")

        await provider.close()

        assert provider._client._client is None
