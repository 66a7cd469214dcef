"""Domain value objects."""

from tunebridge.domain.value_objects.identifiers import (
    canonical_identifier,
    canonical_isrc,
    canonical_upc,
    detect_identifier,
    identifier_kind_for,
)
from tunebridge.domain.value_objects.link_normalization import (
    is_normalized,
    normalize_link,
)
from tunebridge.domain.value_objects.music_types import (
    EntityKind,
    IdentifierKind,
    Provider,
)
from tunebridge.domain.value_objects.title_sanitization import (
    sanitize_album_title,
    sanitize_for_kind,
    sanitize_song_title,
    sanitize_title,
    titles_match,
)

__all__ = [
    "EntityKind",
    "IdentifierKind",
    "Provider",
    "canonical_identifier",
    "canonical_isrc",
    "canonical_upc",
    "detect_identifier",
    "identifier_kind_for",
    "is_normalized",
    "normalize_link",
    "sanitize_album_title",
    "sanitize_for_kind",
    "sanitize_song_title",
    "sanitize_title",
    "titles_match",
]
