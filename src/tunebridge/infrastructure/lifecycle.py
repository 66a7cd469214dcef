"""Application lifecycle management for startup and shutdown tasks.

Startup builds the whole resolution stack once and parks it on app.state:

    Database -> SqlCacheIndex ─┐
    record store backend ──────┼─> ResolutionCache ─┐
    provider registry -> ProviderGateway -> CrossReferencer ─┼─> ResolutionService
    LinkClassifier ──────────────────────────────────────────┘

Shutdown closes everything in reverse: providers (HTTP clients), record store,
database.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from tunebridge.application.cache import ResolutionCache
from tunebridge.application.services import (
    CrossReferencer,
    LinkClassifier,
    ProviderGateway,
    ResolutionService,
)
from tunebridge.config import Settings, get_settings
from tunebridge.domain.entities import Provider
from tunebridge.domain.exceptions import ConfigurationError
from tunebridge.domain.ports import IMusicProvider, IRecordStore
from tunebridge.infrastructure.integrations import (
    AppleMusicClient,
    DeezerClient,
    SoundCloudClient,
    SpotifyClient,
    TidalClient,
    YouTubeClient,
)
from tunebridge.infrastructure.observability import configure_logging
from tunebridge.infrastructure.persistence import Database, SqlCacheIndex
from tunebridge.infrastructure.providers import (
    AppleMusicProvider,
    DeezerMusicProvider,
    MusicProviderRegistry,
    SoundCloudMusicProvider,
    SpotifyMusicProvider,
    TidalMusicProvider,
    YouTubeMusicProvider,
)
from tunebridge.infrastructure.record_store import build_record_store

logger = logging.getLogger(__name__)


# Hey future me, this validates SQLite paths BEFORE we create the engine. SQLite needs to
# create -journal/-wal files next to the .db file, so the directory must be writable.
# We DON'T pre-create the .db file - SQLite initializes it on first connection.
def _validate_sqlite_path(settings: Settings) -> None:
    """Ensure the SQLite database directory exists and is writable."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update DATABASE_URL or adjust directory permissions."
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


def _enabled_providers(settings: Settings) -> list[Provider]:
    try:
        return [Provider.from_string(name) for name in settings.providers.enabled]
    except ValueError as exc:
        raise ConfigurationError(f"Invalid PROVIDERS_ENABLED: {exc}") from exc


# Hey future me - Deezer needs no key, everything else is skipped (with a warning)
# until its credentials are set. A skipped provider's links are still classified,
# they just never yield a result.
def _build_adapter(provider: Provider, settings: Settings) -> IMusicProvider | None:
    if provider == Provider.DEEZER:
        return DeezerMusicProvider(DeezerClient())

    if provider == Provider.SPOTIFY:
        configured, env_hint = settings.spotify.is_configured, "SPOTIFY_CLIENT_ID/SECRET"
    elif provider == Provider.APPLE_MUSIC:
        configured = settings.apple_music.is_configured
        env_hint = "APPLE_MUSIC_TEAM_ID/KEY_ID/PRIVATE_KEY"
    elif provider == Provider.TIDAL:
        configured, env_hint = settings.tidal.is_configured, "TIDAL_CLIENT_ID/SECRET"
    elif provider == Provider.SOUNDCLOUD:
        configured, env_hint = settings.soundcloud.is_configured, "SOUNDCLOUD_CLIENT_ID/SECRET"
    else:
        configured, env_hint = settings.youtube.is_configured, "YOUTUBE_API_KEY"

    if not configured:
        logger.warning("%s enabled but %s not set - skipping", provider.value, env_hint)
        return None

    if provider == Provider.SPOTIFY:
        return SpotifyMusicProvider(SpotifyClient(settings.spotify))
    if provider == Provider.APPLE_MUSIC:
        return AppleMusicProvider(AppleMusicClient(settings.apple_music))
    if provider == Provider.TIDAL:
        return TidalMusicProvider(TidalClient(settings.tidal))
    if provider == Provider.SOUNDCLOUD:
        return SoundCloudMusicProvider(SoundCloudClient(settings.soundcloud))
    return YouTubeMusicProvider(YouTubeClient(settings.youtube))


def build_registry(settings: Settings) -> MusicProviderRegistry:
    """Register an adapter for every enabled provider that is configured."""
    registry = MusicProviderRegistry()
    for provider in _enabled_providers(settings):
        adapter = _build_adapter(provider, settings)
        if adapter is not None:
            registry.register(adapter)
    return registry


def build_resolution_service(
    settings: Settings,
    registry: MusicProviderRegistry,
    database: Database,
    record_store: IRecordStore,
) -> tuple[ResolutionService, ResolutionCache]:
    """Wire the resolution core from settings and already-built infrastructure."""
    gateway = ProviderGateway(
        registry,
        timeout_seconds=settings.providers.timeout_seconds,
        enabled=_enabled_providers(settings),
    )
    cache = ResolutionCache(
        index=SqlCacheIndex(database),
        store=record_store,
        freshness=timedelta(days=settings.cache.freshness_days),
        refresh_on_hit=settings.cache.refresh_on_hit,
        enabled=settings.cache.enabled,
    )
    service = ResolutionService(
        classifier=LinkClassifier(default_market=settings.providers.default_market),
        gateway=gateway,
        cross_referencer=CrossReferencer(
            gateway, search_fallback=settings.providers.search_fallback
        ),
        cache=cache,
        default_market=settings.providers.default_market,
    )
    return service, cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Everything before `yield` runs at startup, everything after at shutdown.
    The finally block runs even if startup fails halfway, so only close what
    actually got created.
    """
    settings = get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    db: Database | None = None
    registry: MusicProviderRegistry | None = None
    record_store: IRecordStore | None = None

    try:
        _validate_sqlite_path(settings)
        db = Database(settings.database)
        await db.create_tables()
        app.state.db = db
        logger.info("Database initialized: %s", settings.database.url)

        registry = build_registry(settings)
        record_store = build_record_store(settings.record_store)
        logger.info("Record store backend: %s", settings.record_store.backend.value)

        service, cache = build_resolution_service(settings, registry, db, record_store)
        app.state.settings = settings
        app.state.registry = registry
        app.state.resolution_cache = cache
        app.state.resolution_service = service
        logger.info(
            "Resolution service ready (providers: %s)",
            ", ".join(p.provider_type.value for p in registry.get_all_providers()) or "none",
        )

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        if registry is not None:
            await registry.close()

        if record_store is not None:
            try:
                await record_store.close()
            except Exception as e:
                logger.exception("Error closing record store: %s", e)

        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception("Error closing database: %s", e)
