"""Shared fixtures: fake providers and a fully wired in-memory resolution stack."""

from collections.abc import Callable

import pytest
from fakes import (
    APPLE_SONG_ID,
    DEEZER_TRACK_ID,
    ISRC,
    SPOTIFY_TRACK_ID,
    UPC,
    FakeClock,
    FakeMusicProvider,
    make_result,
)

from tunebridge.application.cache import InMemoryCacheIndex, ResolutionCache
from tunebridge.application.services import (
    CrossReferencer,
    LinkClassifier,
    ProviderGateway,
    ResolutionService,
)
from tunebridge.domain.entities import Provider
from tunebridge.infrastructure.providers import MusicProviderRegistry
from tunebridge.infrastructure.record_store import InMemoryRecordStore


@pytest.fixture
def spotify() -> FakeMusicProvider:
    result = make_result(
        Provider.SPOTIFY, url=f"https://open.spotify.com/track/{SPOTIFY_TRACK_ID}"
    )
    return FakeMusicProvider(
        Provider.SPOTIFY,
        by_native_id={SPOTIFY_TRACK_ID: result},
        by_identifier={ISRC: result},
    )


@pytest.fixture
def apple() -> FakeMusicProvider:
    result = make_result(
        Provider.APPLE_MUSIC, url=f"https://music.apple.com/us/song/{APPLE_SONG_ID}"
    )
    return FakeMusicProvider(
        Provider.APPLE_MUSIC,
        by_native_id={APPLE_SONG_ID: result},
        by_identifier={ISRC: result},
    )


@pytest.fixture
def deezer() -> FakeMusicProvider:
    track = make_result(
        Provider.DEEZER, url=f"https://www.deezer.com/track/{DEEZER_TRACK_ID}"
    )
    album = make_result(
        Provider.DEEZER,
        title="Nevermind",
        external_id=UPC,
        is_album=True,
        url="https://www.deezer.com/album/1262269",
    )
    return FakeMusicProvider(
        Provider.DEEZER,
        by_native_id={DEEZER_TRACK_ID: track},
        by_identifier={ISRC: track, UPC: album},
    )


@pytest.fixture
def registry(
    spotify: FakeMusicProvider, apple: FakeMusicProvider, deezer: FakeMusicProvider
) -> MusicProviderRegistry:
    registry = MusicProviderRegistry()
    registry.register(spotify)
    registry.register(apple)
    registry.register(deezer)
    return registry


@pytest.fixture
def gateway(registry: MusicProviderRegistry) -> ProviderGateway:
    return ProviderGateway(registry, timeout_seconds=1.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_index() -> InMemoryCacheIndex:
    return InMemoryCacheIndex()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def resolution_cache(
    cache_index: InMemoryCacheIndex,
    record_store: InMemoryRecordStore,
    clock: FakeClock,
) -> ResolutionCache:
    return ResolutionCache(cache_index, record_store, clock=clock)


@pytest.fixture
def service(gateway: ProviderGateway, resolution_cache: ResolutionCache) -> ResolutionService:
    return ResolutionService(
        classifier=LinkClassifier(),
        gateway=gateway,
        cross_referencer=CrossReferencer(gateway),
        cache=resolution_cache,
    )


@pytest.fixture
def total_calls(
    spotify: FakeMusicProvider, apple: FakeMusicProvider, deezer: FakeMusicProvider
) -> Callable[[], int]:
    """Provider calls made so far, across all fakes."""
    return lambda: len(spotify.calls) + len(apple.calls) + len(deezer.calls)
