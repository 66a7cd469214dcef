"""HTTP clients for external music services."""

from tunebridge.infrastructure.integrations.apple_music_client import AppleMusicClient
from tunebridge.infrastructure.integrations.deezer_client import DeezerClient
from tunebridge.infrastructure.integrations.oauth import ClientCredentialsToken
from tunebridge.infrastructure.integrations.soundcloud_client import SoundCloudClient
from tunebridge.infrastructure.integrations.spotify_client import SpotifyClient
from tunebridge.infrastructure.integrations.tidal_client import TidalClient
from tunebridge.infrastructure.integrations.youtube_client import YouTubeClient

__all__ = [
    "AppleMusicClient",
    "ClientCredentialsToken",
    "DeezerClient",
    "SoundCloudClient",
    "SpotifyClient",
    "TidalClient",
    "YouTubeClient",
]
