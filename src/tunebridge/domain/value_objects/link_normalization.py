"""Link normalization - turns any shared music URL into a stable cache key.

Hey future me - this is the ONLY place cache keys for links come from! If two
links should hit the same cache entry, they must normalize to the same string.

Rules (applied until the string stops changing, so the result is idempotent):
1. Trim surrounding whitespace and lowercase
2. Strip leading "https://" / "http://"
3. Strip a leading "www."
4. Cut at the first "?" or "#"
5. Strip trailing "/"

Examples:
    >>> normalize_link("https://Example.com/a/?q=1#f")
    'example.com/a'
    >>> normalize_link("http://www.example.com/a")
    'example.com/a'
    >>> normalize_link("HTTPS://open.spotify.com/track/ABC?si=xyz")
    'open.spotify.com/track/abc'

The normalized key is NEVER shown to the user or stored as their input - the
raw link stays untouched everywhere else.
"""

# =============================================================================
# PREFIXES
# Order matters: scheme first, then host prefix.
# =============================================================================

SCHEME_PREFIXES: tuple[str, ...] = ("https://", "http://")
HOST_PREFIXES: tuple[str, ...] = ("www.",)
CUT_MARKERS: tuple[str, ...] = ("?", "#")


def _strip_prefixes(value: str, prefixes: tuple[str, ...]) -> str:
    for prefix in prefixes:
        if value.startswith(prefix):
            return value[len(prefix) :]
    return value


def _cut_at_markers(value: str) -> str:
    positions = [value.find(marker) for marker in CUT_MARKERS]
    hits = [pos for pos in positions if pos != -1]
    return value[: min(hits)] if hits else value


def _normalize_once(value: str) -> str:
    value = value.strip().lower()
    value = _strip_prefixes(value, SCHEME_PREFIXES)
    value = _strip_prefixes(value, HOST_PREFIXES)
    value = _cut_at_markers(value)
    return value.rstrip("/").strip()


def normalize_link(link: str | None) -> str:
    """Normalize a link into its cache key.

    Args:
        link: Raw link as the user shared it

    Returns:
        Normalized cache key, or "" for empty/whitespace input
    """
    if not link or not link.strip():
        return ""

    # Every pass only ever shortens the string, so this terminates. Looping makes
    # weird inputs like "https://http://x" or "a/ /" idempotent too.
    current = link
    while True:
        normalized = _normalize_once(current)
        if normalized == current:
            return normalized
        current = normalized


def is_normalized(link: str) -> bool:
    """Check whether a link is already in normalized form."""
    return normalize_link(link) == link
