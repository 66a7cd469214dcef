"""Configuration module for TuneBridge."""

from .settings import (
    AppleMusicSettings,
    CacheSettings,
    DatabaseSettings,
    ProviderSettings,
    RecordStoreBackend,
    RecordStoreSettings,
    Settings,
    SoundCloudSettings,
    SpotifySettings,
    TidalSettings,
    YouTubeMusicSettings,
    get_settings,
)

__all__ = [
    "AppleMusicSettings",
    "CacheSettings",
    "DatabaseSettings",
    "ProviderSettings",
    "RecordStoreBackend",
    "RecordStoreSettings",
    "Settings",
    "SoundCloudSettings",
    "SpotifySettings",
    "TidalSettings",
    "YouTubeMusicSettings",
    "get_settings",
]
