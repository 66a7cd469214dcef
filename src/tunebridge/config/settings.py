"""Application settings loaded from environment variables (and .env).

Hey future me - every section is its own BaseSettings with an env prefix, so
`CACHE_FRESHNESS_DAYS=7` or `SPOTIFY_CLIENT_ID=...` just works without touching
code. Access everything through get_settings() - it's cached, so the env is
parsed exactly once per process.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational index store configuration."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./tunebridge.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Log every SQL statement")
    pool_pre_ping: bool = Field(default=True)


class CacheSettings(BaseSettings):
    """Two-tier cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", extra="ignore")

    enabled: bool = Field(default=True, description="Use the link cache at all")
    freshness_days: float = Field(
        default=3.0,
        gt=0,
        description="How long a cached lookup counts as fresh",
    )
    refresh_on_hit: bool = Field(
        default=True,
        description="Bump last_looked_up_at on every fresh cache hit",
    )


class ProviderSettings(BaseSettings):
    """Which providers to query and how patiently."""

    model_config = SettingsConfigDict(env_prefix="PROVIDERS_", extra="ignore")

    enabled: list[str] = Field(
        default_factory=lambda: ["spotify", "deezer"],
        description="Enabled providers, in seed-search order",
    )
    timeout_seconds: float = Field(default=10.0, gt=0)
    default_market: str = Field(default="us", min_length=2, max_length=2)
    search_fallback: bool = Field(
        default=True,
        description="Search by title/artist when an identifier lookup finds nothing",
    )

    @field_validator("default_market")
    @classmethod
    def _lower_market(cls, value: str) -> str:
        return value.lower()


class SpotifySettings(BaseSettings):
    """Spotify Web API credentials (client-credentials flow)."""

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_", extra="ignore")

    client_id: str = Field(default="")
    client_secret: str = Field(default="")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class AppleMusicSettings(BaseSettings):
    """Apple Music API (MusicKit) developer token inputs.

    The developer token is an ES256 JWT signed with the .p8 key from the Apple
    developer portal. Give either the key contents or a path to the .p8 file.
    """

    model_config = SettingsConfigDict(env_prefix="APPLE_MUSIC_", extra="ignore")

    team_id: str = Field(default="", description="Apple developer team id (JWT issuer)")
    key_id: str = Field(default="", description="MusicKit key id (JWT kid header)")
    private_key: str = Field(default="", description="PEM contents of the .p8 key")
    private_key_path: str = Field(default="", description="Path to the .p8 key file")

    @property
    def is_configured(self) -> bool:
        return bool(self.team_id and self.key_id and (self.private_key or self.private_key_path))


class TidalSettings(BaseSettings):
    """Tidal developer API credentials (client-credentials flow)."""

    model_config = SettingsConfigDict(env_prefix="TIDAL_", extra="ignore")

    client_id: str = Field(default="")
    client_secret: str = Field(default="")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class SoundCloudSettings(BaseSettings):
    """SoundCloud API credentials (client-credentials flow)."""

    model_config = SettingsConfigDict(env_prefix="SOUNDCLOUD_", extra="ignore")

    client_id: str = Field(default="")
    client_secret: str = Field(default="")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class YouTubeMusicSettings(BaseSettings):
    """YouTube Data API v3 key (YouTube Music has no public API of its own)."""

    model_config = SettingsConfigDict(env_prefix="YOUTUBE_", extra="ignore")

    api_key: str = Field(default="")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class RecordStoreBackend(str, Enum):
    """Where durable records live."""

    MEMORY = "memory"
    ATPROTO = "atproto"


class RecordStoreSettings(BaseSettings):
    """Durable record store configuration."""

    model_config = SettingsConfigDict(env_prefix="RECORD_STORE_", extra="ignore")

    backend: RecordStoreBackend = Field(default=RecordStoreBackend.MEMORY)
    pds_url: str = Field(default="https://bsky.social")
    identifier: str = Field(default="", description="Handle or DID of the repo owner")
    app_password: str = Field(default="")
    collection: str = Field(default="media.tunebridge.lookup.result")


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_", extra="ignore")

    log_json_format: bool = Field(
        default=False, description="Emit JSON logs (recommended in production)"
    )


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = Field(default="tunebridge")
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")  # nosec B104 - container default
    port: int = Field(default=8000)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    apple_music: AppleMusicSettings = Field(default_factory=AppleMusicSettings)
    tidal: TidalSettings = Field(default_factory=TidalSettings)
    soundcloud: SoundCloudSettings = Field(default_factory=SoundCloudSettings)
    youtube: YouTubeMusicSettings = Field(default_factory=YouTubeMusicSettings)
    record_store: RecordStoreSettings = Field(default_factory=RecordStoreSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return value

    # Yo, this returns None for anything that isn't a file-backed SQLite URL (including
    # ":memory:"), so callers can skip directory checks for everything else.
    def _get_sqlite_db_path(self) -> Path | None:
        url = self.database.url
        if not url.startswith("sqlite") or ":memory:" in url:
            return None
        _, _, path = url.partition(":///")
        if not path:
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
