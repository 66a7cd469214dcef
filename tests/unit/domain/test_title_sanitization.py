"""Tests for title sanitization used before title/artist searches."""

import pytest

from tunebridge.domain.value_objects import (
    sanitize_album_title,
    sanitize_for_kind,
    sanitize_song_title,
    sanitize_title,
    titles_match,
)


class TestSanitizeTitle:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Don’t Stop Me Now", "Dont Stop Me Now"),
            ("Don't Stop Me Now", "Dont Stop Me Now"),
            ("“Heroes”", "Heroes"),
            ('"Heroes"', "Heroes"),
            ("Plain Title", "Plain Title"),
        ],
    )
    def test_quotes_removed(self, title: str, expected: str) -> None:
        """Test that quotes are stripped."""
        assert sanitize_title(title) == expected


class TestAlbumTitles:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Blue Monday - Single", "Blue Monday"),
            ("Blue Monday - EP", "Blue Monday"),
            ("Blue Monday (EP)", "Blue Monday"),
            ("Single Ladies", "Single Ladies"),
            ("The EP Collection", "The EP Collection"),
        ],
    )
    def test_single_and_ep_addenda_dropped(self, title: str, expected: str) -> None:
        """Test that single and EP addenda are dropped from album titles."""
        assert sanitize_album_title(title) == expected


class TestSongTitles:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Titanium (Radio Edit)", "Titanium Radio Edit"),
            ("Titanium - Radio Edit", "Titanium Radio Edit"),
            ("Titanium", "Titanium"),
        ],
    )
    def test_radio_edit_flattened(self, title: str, expected: str) -> None:
        """Test that radio edit addenda are flattened."""
        assert sanitize_song_title(title) == expected

    def test_album_rules_not_applied_to_songs(self) -> None:
        """Test that album-only rules leave song titles alone."""
        assert sanitize_song_title("Blue Monday - Single") == "Blue Monday - Single"


class TestSanitizeForKind:
    def test_dispatch(self) -> None:
        """Test that sanitize_title dispatches on is_album."""
        assert sanitize_for_kind("X - Single", True) == "X"
        assert sanitize_for_kind("X (Radio Edit)", False) == "X Radio Edit"
        assert sanitize_for_kind("X’s - Single", None) == "Xs - Single"

    def test_titles_match_ignores_case_and_decoration(self) -> None:
        """Test that title matching ignores case and decoration."""
        assert titles_match("Blue Monday - Single", "blue monday", True)
        assert titles_match("Don’t Stop", "DONT STOP", False)
        assert not titles_match("Blue Monday", "Blue Tuesday", None)
