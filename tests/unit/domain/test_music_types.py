"""Tests for provider and entity enums."""

import pytest

from tunebridge.domain.value_objects import EntityKind, Provider


class TestProvider:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("spotify", Provider.SPOTIFY),
            ("appleMusic", Provider.APPLE_MUSIC),
            ("apple_music", Provider.APPLE_MUSIC),
            ("apple-music", Provider.APPLE_MUSIC),
            ("YOUTUBE_MUSIC", Provider.YOUTUBE_MUSIC),
            ("soundcloud", Provider.SOUNDCLOUD),
            ("Deezer", Provider.DEEZER),
        ],
    )
    def test_from_string(self, name: str, expected: Provider) -> None:
        """Test parsing provider names."""
        assert Provider.from_string(name) is expected

    def test_from_string_unknown(self) -> None:
        """Test that unknown provider names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown provider"):
            Provider.from_string("napster")

    def test_wire_names_are_stable(self) -> None:
        """Stored records carry these strings."""
        assert [p.value for p in Provider] == [
            "spotify",
            "appleMusic",
            "youTubeMusic",
            "soundCloud",
            "tidal",
            "deezer",
        ]


class TestEntityKind:
    def test_is_album(self) -> None:
        """Test the is_album helper."""
        assert EntityKind.ALBUM.is_album is True
        assert EntityKind.TRACK.is_album is False
        assert EntityKind.PLAYLIST.is_album is None
        assert EntityKind.VIDEO.is_album is None
