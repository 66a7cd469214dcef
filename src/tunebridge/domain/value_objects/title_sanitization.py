"""Title sanitization for title/artist searches.

Hey future me - providers disagree on how they decorate titles! Apple says
"Blue Monday - Single", Spotify just says "Blue Monday". Searching one with the
other's title finds nothing. So before searching (and when comparing search
hits against what we asked for) we clean titles up:

1. Typographic AND straight quotes go away entirely (’ ‘ “ ” ' ")
2. Albums: a trailing " - Single" / " - EP" / " (EP)" addendum is dropped
3. Songs: a trailing " - Radio Edit" / " (Radio Edit)" is flattened to " Radio Edit"
   (the edit is a DIFFERENT recording, so we keep the words, just not the punctuation)

Examples:
    >>> sanitize_album_title("Blue Monday - Single")
    'Blue Monday'
    >>> sanitize_song_title("Titanium (Radio Edit)")
    'Titanium Radio Edit'
    >>> sanitize_song_title("Don’t Stop Me Now")
    'Dont Stop Me Now'
"""

import re

_IGNORED_CHARS_PATTERN = re.compile(r"[‘’“”'\"]")
_ALBUM_ADDENDUM_PATTERN = re.compile(r" (?:- )?\(?(?:Single|EP)\)?$")
_SONG_ADDENDUM_PATTERN = re.compile(r" (?:- )?\(?(?P<edit_type>Radio Edit)\)?$")


def sanitize_title(title: str) -> str:
    """Remove quote characters that break provider search queries."""
    return _IGNORED_CHARS_PATTERN.sub("", title)


def sanitize_album_title(title: str) -> str:
    """Sanitize an album title, dropping single/EP addenda."""
    return sanitize_title(_ALBUM_ADDENDUM_PATTERN.sub("", title).strip())


def sanitize_song_title(title: str) -> str:
    """Sanitize a song title, flattening a radio-edit addendum."""
    match = _SONG_ADDENDUM_PATTERN.search(title)
    if match:
        title = f"{title[: match.start()].strip()} {match.group('edit_type')}"
    return sanitize_title(title)


def sanitize_for_kind(title: str, is_album: bool | None) -> str:
    """Pick the right sanitizer; unknown kinds only lose their quotes."""
    if is_album is True:
        return sanitize_album_title(title)
    if is_album is False:
        return sanitize_song_title(title)
    return sanitize_title(title)


def titles_match(left: str, right: str, is_album: bool | None) -> bool:
    """Compare two titles case-insensitively after sanitizing both."""
    return (
        sanitize_for_kind(left, is_album).casefold()
        == sanitize_for_kind(right, is_album).casefold()
    )
