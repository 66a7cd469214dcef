"""Provider adapters and the provider registry."""

from tunebridge.infrastructure.providers.apple_music_provider import AppleMusicProvider
from tunebridge.infrastructure.providers.deezer_provider import DeezerMusicProvider
from tunebridge.infrastructure.providers.registry import MusicProviderRegistry
from tunebridge.infrastructure.providers.soundcloud_provider import SoundCloudMusicProvider
from tunebridge.infrastructure.providers.spotify_provider import SpotifyMusicProvider
from tunebridge.infrastructure.providers.tidal_provider import TidalMusicProvider
from tunebridge.infrastructure.providers.youtube_music_provider import YouTubeMusicProvider

__all__ = [
    "AppleMusicProvider",
    "DeezerMusicProvider",
    "MusicProviderRegistry",
    "SoundCloudMusicProvider",
    "SpotifyMusicProvider",
    "TidalMusicProvider",
    "YouTubeMusicProvider",
]
