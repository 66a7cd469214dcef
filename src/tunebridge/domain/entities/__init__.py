"""Domain entities.

Hey future me - the data flow through these is:

    raw text ──classify──► ClassifiedLink / IdentifierQuery
                               │
                               ▼ (providers)
                          ProviderResult (one per provider)
                               │
                               ▼ (cross-reference + aggregate)
                          ResolutionResult ──to_record──► DurableRecord (durable store)
                               │
                               └── input_links ──► CacheIndexEntry (local index only!)

Input links NEVER leave the local index. DurableRecord has no field for them on
purpose - that's the privacy boundary.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from tunebridge.domain.value_objects import (
    EntityKind,
    IdentifierKind,
    Provider,
    canonical_isrc,
    canonical_upc,
    detect_identifier,
)

DEFAULT_MARKET = "us"

_WHITESPACE_PATTERN = re.compile(r"\s+")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands those back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _collapse(value: str) -> str:
    return _WHITESPACE_PATTERN.sub(" ", value).strip().casefold()


# =============================================================================
# CLASSIFIED INPUTS
# =============================================================================


@dataclass(frozen=True)
class ClassifiedLink:
    """A provider link recognized in user input.

    Attributes:
        provider: Provider whose URL grammar matched
        entity_kind: What the link points at
        native_id: Provider-specific id captured from the URL
        link: The link exactly as the user wrote it
        market: Storefront/market from the URL (or the default market)
        cache_key: Normalized link used as the index key
    """

    provider: Provider
    entity_kind: EntityKind
    native_id: str
    link: str
    market: str
    cache_key: str


@dataclass(frozen=True)
class IdentifierQuery:
    """A bare ISRC/UPC recognized in user input."""

    kind: IdentifierKind
    value: str
    raw: str = ""

    @property
    def cache_key(self) -> str:
        return f"{self.kind.value}:{self.value}"


LookupInput = ClassifiedLink | IdentifierQuery


# =============================================================================
# PROVIDER RESULT
# =============================================================================


# Hey future me - is_primary and provider are compare=False! Two results
# with the same metadata are the SAME result no matter which aggregation flagged
# them primary. is_primary is process-local state: it's never serialized (see
# DurableRecord.to_dict) and only set via as_primary()/as_secondary().
@dataclass(frozen=True)
class ProviderResult:
    """One provider's metadata for a track or album."""

    provider: Provider = field(compare=False)
    artist: str
    title: str
    url: str
    external_id: str = ""
    art_url: str | None = None
    market_region: str = DEFAULT_MARKET
    is_album: bool | None = None
    is_primary: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        # Malformed identifiers are treated as absent, never as match keys
        object.__setattr__(
            self, "external_id", self._canonical_external_id() or ""
        )
        object.__setattr__(
            self, "market_region", (self.market_region or DEFAULT_MARKET).lower()
        )

    def _canonical_external_id(self) -> str | None:
        if not self.external_id:
            return None
        if self.is_album is True:
            return canonical_upc(self.external_id)
        if self.is_album is False:
            return canonical_isrc(self.external_id)
        detected = detect_identifier(self.external_id)
        return detected[1] if detected else None

    @property
    def has_identifier(self) -> bool:
        return bool(self.external_id)

    def as_primary(self) -> "ProviderResult":
        return replace(self, is_primary=True)

    def as_secondary(self) -> "ProviderResult":
        return replace(self, is_primary=False)

    def work_key(self) -> str:
        """Work identity: the identifier if we have one, else artist+title."""
        if self.external_id:
            detected = detect_identifier(self.external_id)
            if detected is not None:
                kind, value = detected
                return f"{kind.value}:{value}"
        return f"meta:{_collapse(self.artist)}|{_collapse(self.title)}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the durable record layout (camelCase, optional keys omitted)."""
        data: dict[str, Any] = {
            "provider": self.provider.value,
            "artist": self.artist,
            "title": self.title,
            "url": self.url,
            "marketRegion": self.market_region,
        }
        if self.external_id:
            data["externalId"] = self.external_id
        if self.art_url:
            data["artUrl"] = self.art_url
        if self.is_album is not None:
            data["isAlbum"] = self.is_album
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderResult":
        """Parse the durable record layout.

        Raises:
            KeyError/ValueError/TypeError: On missing or invalid fields
        """
        is_album = data.get("isAlbum")
        if is_album is not None and not isinstance(is_album, bool):
            raise TypeError(f"isAlbum must be a bool, got {type(is_album).__name__}")
        return cls(
            provider=Provider(data["provider"]),
            artist=str(data["artist"]),
            title=str(data["title"]),
            url=str(data["url"]),
            external_id=data.get("externalId") or "",
            art_url=data.get("artUrl"),
            market_region=data.get("marketRegion") or DEFAULT_MARKET,
            is_album=is_album,
        )


# =============================================================================
# DURABLE RECORD
# =============================================================================


@dataclass
class DurableRecord:
    """Authoritative provider-agnostic payload written to the durable store.

    Layout (lexicon media.tunebridge.lookup.result):
        {"results": [ProviderResult.to_dict(), ...], "lookedUpAt": ISO-8601}
    """

    results: list[ProviderResult]
    looked_up_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "lookedUpAt": ensure_utc_aware(self.looked_up_at).isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DurableRecord":
        """Parse a stored record.

        Raises:
            KeyError/ValueError/TypeError: If the payload doesn't match the layout
        """
        raw_results = data["results"]
        if not isinstance(raw_results, list):
            raise TypeError("results must be a list")
        looked_up_at = datetime.fromisoformat(data["lookedUpAt"])
        return cls(
            results=[ProviderResult.from_dict(item) for item in raw_results],
            looked_up_at=ensure_utc_aware(looked_up_at),
        )


# =============================================================================
# RESOLUTION RESULT
# =============================================================================


@dataclass
class ResolutionResult:
    """The unit of work: every provider's view of one track/album.

    results holds at most one entry per provider (dict keys). input_links is the
    set of raw links that produced this result; it is excluded from equality.
    """

    results: dict[Provider, ProviderResult] = field(default_factory=dict)
    input_links: set[str] = field(default_factory=set, compare=False)

    def __bool__(self) -> bool:
        return bool(self.results)

    def add(self, result: ProviderResult) -> None:
        """Add a provider entry; an existing entry for the provider is replaced."""
        self.results[result.provider] = result

    @property
    def primary(self) -> ProviderResult | None:
        """The directly-queried provider's entry (falls back to the first entry)."""
        for result in self.results.values():
            if result.is_primary:
                return result
        return next(iter(self.results.values()), None)

    @property
    def primary_provider(self) -> Provider | None:
        primary = self.primary
        return primary.provider if primary else None

    def mark_primary(self, provider: Provider) -> None:
        """Flag exactly one provider's entry as primary (no-op if it's missing)."""
        if provider not in self.results:
            return
        self.results = {
            key: value.as_primary() if key == provider else value.as_secondary()
            for key, value in self.results.items()
        }

    def work_key(self) -> str | None:
        """Work identity of the primary entry (None for an empty result)."""
        primary = self.primary
        return primary.work_key() if primary else None

    def to_record(self, looked_up_at: datetime | None = None) -> DurableRecord:
        """Durable form: primary first, is_primary and input links dropped."""
        ordered = sorted(
            self.results.values(), key=lambda result: not result.is_primary
        )
        return DurableRecord(
            results=[result.as_secondary() for result in ordered],
            looked_up_at=looked_up_at or utc_now(),
        )

    @classmethod
    def from_record(
        cls,
        record: DurableRecord,
        input_links: set[str] | None = None,
        primary: Provider | None = None,
    ) -> "ResolutionResult":
        """Rebuild from a stored record.

        Records are written primary-first, so without an explicit primary the
        first stored entry gets the flag back.
        """
        resolution = cls(input_links=set(input_links or ()))
        for result in record.results:
            resolution.add(result)
        if primary is None and record.results:
            primary = record.results[0].provider
        if primary is not None:
            resolution.mark_primary(primary)
        return resolution


# =============================================================================
# CACHE INDEX ENTRY
# =============================================================================


@dataclass
class CacheIndexEntry:
    """Local index row: normalized link -> durable record pointer.

    Hey future me - many entries can share one record_pointer (many links, one work).
    Staleness never deletes an entry, it only triggers re-resolution.
    """

    key: str
    record_pointer: str
    work_key: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    last_looked_up_at: datetime = field(default_factory=utc_now)
    input_links: set[str] = field(default_factory=set)

    def is_fresh(self, window: timedelta, now: datetime | None = None) -> bool:
        """Inclusive freshness: exactly `window` old still counts as fresh."""
        now = now or utc_now()
        return ensure_utc_aware(now) - ensure_utc_aware(self.last_looked_up_at) <= window


__all__ = [
    "DEFAULT_MARKET",
    "CacheIndexEntry",
    "ClassifiedLink",
    "DurableRecord",
    "EntityKind",
    "IdentifierKind",
    "IdentifierQuery",
    "LookupInput",
    "Provider",
    "ProviderResult",
    "ResolutionResult",
    "ensure_utc_aware",
    "utc_now",
]
