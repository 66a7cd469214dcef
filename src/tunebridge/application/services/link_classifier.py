"""Link classification - finds provider links and bare identifiers in free text.

Hey future me - this is where a chat message like

    "omg listen to https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC?si=x and USRC17607839"

turns into [ClassifiedLink(spotify, track, "4uLU6hMCjMI75M1A2tKUQC"), IdentifierQuery(isrc, ...)].

Rules:
- Text is split on whitespace, surrounding punctuation is peeled off each token
- A token matching a provider URL grammar becomes a ClassifiedLink
- A bare 12-14 digit token is a candidate UPC, a bare ISRC-shaped token a candidate ISRC
- Everything else is dropped SILENTLY - a miss never fails the batch
- The same cache key only appears once per classification

Short links (spotify.link/..., on.soundcloud.com/...) are NOT followed - resolving
them needs an HTTP redirect fetch, which is not the classifier's job.
"""

import logging
import re
from dataclasses import dataclass, field

from tunebridge.domain.entities import (
    DEFAULT_MARKET,
    ClassifiedLink,
    EntityKind,
    IdentifierQuery,
    LookupInput,
    Provider,
)
from tunebridge.domain.value_objects import detect_identifier, normalize_link

logger = logging.getLogger(__name__)

# Characters that commonly wrap links in chat messages: <url>, (url), "url", url.
_WRAPPING_CHARS = "<>()[]{}\"'.,;:!*~`|"

# SoundCloud paths that are user pages, not tracks
_SOUNDCLOUD_RESERVED = frozenset(
    {"tracks", "albums", "sets", "reposts", "likes", "followers", "following", "popular-tracks"}
)


@dataclass(frozen=True)
class LinkGrammar:
    """URL grammar of one provider link shape.

    Named groups the pattern may capture:
        id       - provider-native id (required)
        kind     - entity kind text, looked up in `kinds` ("" if the group is absent)
        market   - market/storefront
        song_id  - Apple's "?i=" song inside an album link (turns the link into a track)

    Attributes:
        provider: Provider the grammar belongs to
        pattern: Compiled pattern, searched within a token
        kinds: Map of captured kind text -> EntityKind
        key_template: Cache key template for links whose id lives in the query
                      string (normalization would cut it off otherwise)
    """

    provider: Provider
    pattern: re.Pattern[str]
    kinds: dict[str, EntityKind]
    key_template: str | None = None

    def match(self, token: str, default_market: str) -> ClassifiedLink | None:
        found = self.pattern.search(token)
        if found is None:
            return None

        groups = found.groupdict()
        kind = self.kinds.get((groups.get("kind") or "").lower())
        native_id = groups.get("id")
        if kind is None or not native_id:
            return None

        market = (groups.get("market") or default_market).lower()
        if groups.get("song_id"):
            kind = EntityKind.TRACK
            native_id = groups["song_id"]
            cache_key = normalize_link(f"music.apple.com/{market}/song/{native_id}")
        elif self.key_template:
            cache_key = normalize_link(self.key_template.format(id=native_id))
        else:
            cache_key = normalize_link(found.group(0))

        return ClassifiedLink(
            provider=self.provider,
            entity_kind=kind,
            native_id=native_id,
            link=token,
            market=market,
            cache_key=cache_key,
        )


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


# =============================================================================
# GRAMMARS
# Keyed by provider so adding a provider means adding one entry here.
# =============================================================================

DEFAULT_GRAMMARS: dict[Provider, tuple[LinkGrammar, ...]] = {
    Provider.SPOTIFY: (
        LinkGrammar(
            provider=Provider.SPOTIFY,
            pattern=_compile(
                r"open\.spotify\.com/(?:intl-(?P<market>[a-z]{2})(?:-[a-z]+)?/)?(?:embed/)?"
                r"(?P<kind>track|album|playlist)/(?P<id>[A-Za-z0-9]+)"
            ),
            kinds={
                "track": EntityKind.TRACK,
                "album": EntityKind.ALBUM,
                "playlist": EntityKind.PLAYLIST,
            },
        ),
    ),
    Provider.APPLE_MUSIC: (
        LinkGrammar(
            provider=Provider.APPLE_MUSIC,
            pattern=_compile(
                r"music\.apple\.com/(?P<market>[a-z]{2})/(?P<kind>album|song|playlist|music-video)/"
                r"(?:[^/?#\s]+/)?(?P<id>(?:pl\.)?[A-Za-z0-9\-]+)"
                r"(?:\?(?:[^\s#]*&)?i=(?P<song_id>\d+))?"
            ),
            kinds={
                "album": EntityKind.ALBUM,
                "song": EntityKind.TRACK,
                "playlist": EntityKind.PLAYLIST,
                "music-video": EntityKind.VIDEO,
            },
        ),
    ),
    Provider.YOUTUBE_MUSIC: (
        LinkGrammar(
            provider=Provider.YOUTUBE_MUSIC,
            pattern=_compile(r"music\.youtube\.com/watch\?(?:[^\s#]*&)?v=(?P<id>[A-Za-z0-9_\-]+)"),
            kinds={"": EntityKind.VIDEO},
            key_template="music.youtube.com/watch/{id}",
        ),
        LinkGrammar(
            provider=Provider.YOUTUBE_MUSIC,
            pattern=_compile(
                r"music\.youtube\.com/playlist\?(?:[^\s#]*&)?list=(?P<id>[A-Za-z0-9_\-]+)"
            ),
            kinds={"": EntityKind.PLAYLIST},
            key_template="music.youtube.com/playlist/{id}",
        ),
    ),
    Provider.SOUNDCLOUD: (
        LinkGrammar(
            provider=Provider.SOUNDCLOUD,
            pattern=_compile(
                r"(?<![^/])(?:www\.|m\.)?soundcloud\.com/(?P<id>[\w\-]+/(?P<kind>sets/)?[\w\-]+)"
            ),
            kinds={"": EntityKind.TRACK, "sets/": EntityKind.PLAYLIST},
        ),
    ),
    Provider.TIDAL: (
        LinkGrammar(
            provider=Provider.TIDAL,
            pattern=_compile(
                r"(?:listen\.)?tidal\.com/(?:browse/)?(?P<kind>track|album|video)/(?P<id>\d+)"
            ),
            kinds={
                "track": EntityKind.TRACK,
                "album": EntityKind.ALBUM,
                "video": EntityKind.VIDEO,
            },
        ),
    ),
    Provider.DEEZER: (
        LinkGrammar(
            provider=Provider.DEEZER,
            pattern=_compile(
                r"deezer\.com/(?:[a-z]{2}/)?(?P<kind>track|album|playlist)/(?P<id>\d+)"
            ),
            kinds={
                "track": EntityKind.TRACK,
                "album": EntityKind.ALBUM,
                "playlist": EntityKind.PLAYLIST,
            },
        ),
    ),
}


@dataclass
class LinkClassifier:
    """Classifies provider links and bare identifiers in user text."""

    default_market: str = DEFAULT_MARKET
    grammars: dict[Provider, tuple[LinkGrammar, ...]] = field(
        default_factory=lambda: dict(DEFAULT_GRAMMARS)
    )

    def classify(self, text: str) -> list[LookupInput]:
        """Classify every recognizable link/identifier in text.

        Args:
            text: Free-form text (a chat message, a pasted list of links, ...)

        Returns:
            Classified inputs in order of appearance, one per cache key
        """
        inputs: list[LookupInput] = []
        seen_keys: set[str] = set()

        for raw_token in text.split():
            token = raw_token.strip(_WRAPPING_CHARS)
            if not token:
                continue

            classified = self.classify_token(token)
            if classified is None:
                logger.debug("Dropping unclassifiable token: %s", token[:80])
                continue
            if classified.cache_key in seen_keys:
                continue

            seen_keys.add(classified.cache_key)
            inputs.append(classified)

        return inputs

    def classify_token(self, token: str) -> LookupInput | None:
        """Classify a single whitespace-free token."""
        # Bare identifiers bypass link grammars entirely
        identifier = detect_identifier(token)
        if identifier is not None:
            kind, value = identifier
            return IdentifierQuery(kind=kind, value=value, raw=token)

        return self.classify_link(token)

    def classify_link(self, link: str) -> ClassifiedLink | None:
        """Match a link against every provider grammar (first match wins)."""
        for grammars in self.grammars.values():
            for grammar in grammars:
                classified = grammar.match(link, self.default_market)
                if classified is None:
                    continue
                if not self._is_content_link(classified):
                    return None
                return classified
        return None

    @staticmethod
    def _is_content_link(classified: ClassifiedLink) -> bool:
        if classified.provider == Provider.SOUNDCLOUD:
            _, _, rest = classified.native_id.partition("/")
            return rest not in _SOUNDCLOUD_RESERVED
        return True
