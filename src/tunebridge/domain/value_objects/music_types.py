"""Provider and entity type enums for the domain layer.

Hey future me - Provider values are the WIRE NAMES used in durable records
("appleMusic", "spotify", ...). Don't rename them casually - records already
written to the store carry these strings and from_record() looks them up by value!

Usage:
    from tunebridge.domain.value_objects.music_types import Provider, EntityKind

    if classified.provider == Provider.SPOTIFY and classified.entity_kind == EntityKind.TRACK:
        ...
"""

from enum import Enum


class Provider(str, Enum):
    """Supported streaming providers."""

    SPOTIFY = "spotify"
    APPLE_MUSIC = "appleMusic"
    YOUTUBE_MUSIC = "youTubeMusic"
    SOUNDCLOUD = "soundCloud"
    TIDAL = "tidal"
    DEEZER = "deezer"

    @classmethod
    def from_string(cls, value: str) -> "Provider":
        """Parse a provider name, accepting wire names and snake/kebab variants.

        Raises:
            ValueError: If the name matches no provider
        """
        wanted = value.replace("_", "").replace("-", "").lower()
        for provider in cls:
            if provider.value.lower() == wanted or provider.name.replace("_", "").lower() == wanted:
                return provider
        raise ValueError(f"Unknown provider: {value}")


class EntityKind(str, Enum):
    """What a provider link points at."""

    TRACK = "track"
    """A single recording (Apple calls it "song")."""

    ALBUM = "album"
    """A release - singles and EPs included."""

    PLAYLIST = "playlist"
    """A user or editorial playlist (SoundCloud "sets" too)."""

    VIDEO = "video"
    """A YouTube Music watch link - could be a song or a music video."""

    @property
    def is_album(self) -> bool | None:
        """Album discriminator for results resolved from this kind (None = unknown)."""
        if self == EntityKind.ALBUM:
            return True
        if self == EntityKind.TRACK:
            return False
        return None


class IdentifierKind(str, Enum):
    """Standardized cross-provider identifiers."""

    ISRC = "isrc"
    """International Standard Recording Code - identifies a recording (track)."""

    UPC = "upc"
    """Universal Product Code - identifies a release (album)."""
