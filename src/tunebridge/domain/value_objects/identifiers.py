"""Standard recording/release identifiers: ISRC and UPC.

Hey future me - ISRC and UPC are THE GOLDEN KEYS for cross-platform matching!
If two providers report the same ISRC, it's the same recording. Period.

- ISRC (tracks): 12 chars, CC-XXX-YY-NNNNN (country, registrant, year, serial)
  e.g. "USRC17607839" or "US-RC1-76-07839"
- UPC (albums): 12-14 digit barcode (UPC-A / EAN-13 / GTIN-14)
  e.g. "00602537518357"

Malformed identifiers are treated as ABSENT - never as match keys. That's why
every function here returns None instead of raising.

Examples:
    >>> canonical_isrc("us-rc1-76-07839")
    'USRC17607839'
    >>> canonical_upc("0060 2537 518357")
    '00602537518357'
    >>> canonical_isrc("not-an-isrc") is None
    True
"""

import re

from tunebridge.domain.value_objects.music_types import IdentifierKind

# Separators people and APIs sprinkle into identifiers
_SEPARATORS_PATTERN = re.compile(r"[\s\-_.]")

ISRC_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}[0-9]{7}$")
UPC_PATTERN = re.compile(r"^[0-9]{12,14}$")


def _strip_separators(value: str) -> str:
    return _SEPARATORS_PATTERN.sub("", value)


def canonical_isrc(value: str | None) -> str | None:
    """Return the canonical (uppercase, separator-free) ISRC or None if malformed."""
    if not value:
        return None
    candidate = _strip_separators(value).upper()
    return candidate if ISRC_PATTERN.match(candidate) else None


def canonical_upc(value: str | None) -> str | None:
    """Return the canonical (digits-only) UPC/EAN or None if malformed."""
    if not value:
        return None
    candidate = _strip_separators(value)
    return candidate if UPC_PATTERN.match(candidate) else None


def canonical_identifier(kind: IdentifierKind, value: str | None) -> str | None:
    """Canonicalize a value of a known identifier kind."""
    if kind == IdentifierKind.ISRC:
        return canonical_isrc(value)
    return canonical_upc(value)


# Yo, the order here matters! A 12-digit string is a valid UPC-A AND could never be
# an ISRC (ISRC starts with two letters), so the checks don't overlap - but we test
# UPC first anyway so "all digits" always means barcode.
def detect_identifier(value: str | None) -> tuple[IdentifierKind, str] | None:
    """Detect which identifier kind a bare token is.

    Args:
        value: Candidate token (e.g. a word from a chat message)

    Returns:
        (kind, canonical value) or None if the token is no identifier
    """
    upc = canonical_upc(value)
    if upc is not None:
        return IdentifierKind.UPC, upc
    isrc = canonical_isrc(value)
    if isrc is not None:
        return IdentifierKind.ISRC, isrc
    return None


def identifier_kind_for(
    external_id: str | None, is_album: bool | None
) -> tuple[IdentifierKind, str] | None:
    """Work out how to query by a result's external id.

    If we know whether the result is an album we trust that (albums carry UPCs,
    tracks carry ISRCs). If not, we guess from the identifier's shape.
    """
    if is_album is True:
        upc = canonical_upc(external_id)
        return (IdentifierKind.UPC, upc) if upc else None
    if is_album is False:
        isrc = canonical_isrc(external_id)
        return (IdentifierKind.ISRC, isrc) if isrc else None
    return detect_identifier(external_id)
