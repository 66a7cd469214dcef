"""Resolution service - the public entry point of the resolution core.

Hey future me - this is what the HTTP router (and any chat handler) talks to:

- resolve_batch(text)              -> async stream of results, one per distinct work
- resolve_by_identifier(kind, val) -> one result or None
- resolve_by_title_artist(t, a)    -> one result or None

Pipeline for a batch:

    text -> LinkClassifier -> [ClassifiedLink | IdentifierQuery]
         -> StreamingEmitter (one task per input, completion order)
              -> ResolutionCache.lookup(cache_key)   (hit = zero provider calls)
                   -> miss: gateway seed lookup -> CrossReferencer
         -> ResultAggregator (drop duplicate works, merge their input links)
         -> caller

The ONLY things that raise out of here are contract violations (ValidationError
for empty/None input). Unknown links, dead providers, broken caches all end up as
"no result".
"""

import logging
from collections.abc import AsyncIterator
from functools import partial

from tunebridge.application.cache import ResolutionCache
from tunebridge.application.services.cross_referencer import CrossReferencer
from tunebridge.application.services.link_classifier import LinkClassifier
from tunebridge.application.services.provider_gateway import ProviderGateway
from tunebridge.application.services.result_aggregator import ResultAggregator
from tunebridge.application.services.streaming_emitter import StreamingEmitter
from tunebridge.domain.entities import (
    DEFAULT_MARKET,
    ClassifiedLink,
    IdentifierKind,
    IdentifierQuery,
    LookupInput,
    Provider,
    ResolutionResult,
)
from tunebridge.domain.exceptions import ValidationError
from tunebridge.domain.value_objects import canonical_identifier

logger = logging.getLogger(__name__)


class ResolutionService:
    """Resolves links, identifiers and title/artist pairs across providers."""

    def __init__(
        self,
        classifier: LinkClassifier,
        gateway: ProviderGateway,
        cross_referencer: CrossReferencer,
        cache: ResolutionCache,
        default_market: str = DEFAULT_MARKET,
    ) -> None:
        self._classifier = classifier
        self._gateway = gateway
        self._cross_referencer = cross_referencer
        self._cache = cache
        self._default_market = default_market

    # =========================================================================
    # BATCH (streaming)
    # =========================================================================

    # Hey future me - NOT an async generator itself! Validation runs when you call it,
    # before the HTTP layer starts streaming. The returned iterator does the lazy work.
    def resolve_batch(self, text: str) -> AsyncIterator[ResolutionResult]:
        """Resolve every link/identifier found in text, streaming results.

        Args:
            text: Free-form text containing one or more links or ISRC/UPC codes

        Returns:
            Lazy, one-shot async iterator of results in completion order

        Raises:
            ValidationError: If text is None or blank
        """
        if text is None or not text.strip():
            raise ValidationError("Lookup text must not be empty")

        inputs = self._classifier.classify(text)
        logger.info("Resolving batch: %d classified inputs", len(inputs))
        return self._stream(inputs)

    async def _stream(self, inputs: list[LookupInput]) -> AsyncIterator[ResolutionResult]:
        aggregator = ResultAggregator()
        emitter: StreamingEmitter[LookupInput, ResolutionResult] = StreamingEmitter(
            self._resolve_input
        )
        async for result in emitter.emit(inputs):
            distinct = aggregator.add(result)
            if distinct is not None:
                yield distinct

    async def _resolve_input(self, item: LookupInput) -> ResolutionResult | None:
        primary: Provider | None
        if isinstance(item, IdentifierQuery):
            raw = item.raw or item.value
            primary = None
            resolve = partial(self._resolve_identifier, item.kind, item.value)
        else:
            raw = item.link
            primary = item.provider
            resolve = partial(self._resolve_link, item)

        shared = await self._cache.lookup(item.cache_key, resolve, primary=primary)
        if not shared:
            logger.debug("No result for input: %s", raw)
            return None
        return self._for_request(shared, raw, primary)

    # Coalesced lookups hand the SAME object to every waiter, so each request works
    # on its own copy (the aggregator mutates input_links).
    @staticmethod
    def _for_request(
        shared: ResolutionResult, raw: str, primary: Provider | None
    ) -> ResolutionResult:
        result = ResolutionResult(results=dict(shared.results), input_links={raw})
        if primary is not None:
            result.mark_primary(primary)
        return result

    async def _resolve_link(self, link: ClassifiedLink) -> ResolutionResult | None:
        seed = await self._gateway.get_by_native_id(
            link.provider, link.entity_kind, link.native_id, link.market
        )
        if seed is None:
            logger.info(
                "No seed from %s for %s %s",
                link.provider.value,
                link.entity_kind.value,
                link.native_id,
            )
            return None
        return await self._cross_referencer.cross_reference(seed, market=link.market)

    async def _resolve_identifier(
        self, kind: IdentifierKind, value: str
    ) -> ResolutionResult | None:
        # First provider (in configured order) that knows the identifier seeds the result
        for provider in self._gateway.providers:
            seed = await self._gateway.get_by_identifier(
                provider, kind, value, self._default_market
            )
            if seed is not None:
                return await self._cross_referencer.cross_reference(seed)
        logger.info("No provider knows %s %s", kind.value, value)
        return None

    # =========================================================================
    # SINGLE LOOKUPS (uncached)
    # =========================================================================

    async def resolve_by_identifier(
        self, kind: IdentifierKind, value: str
    ) -> ResolutionResult | None:
        """Resolve an ISRC (track) or UPC (album).

        Args:
            kind: ISRC or UPC
            value: Identifier as given by the caller (separators allowed)

        Returns:
            ResolutionResult, or None if the identifier is malformed or unknown

        Raises:
            ValidationError: If value is None or blank
        """
        if value is None or not value.strip():
            raise ValidationError(f"{kind.value.upper()} must not be empty")

        canonical = canonical_identifier(kind, value)
        if canonical is None:
            logger.info("Malformed %s ignored: %s", kind.value, value)
            return None

        result = await self._resolve_identifier(kind, canonical)
        if result is not None:
            result.input_links.add(canonical)
        return result

    async def resolve_by_title_artist(
        self, title: str, artist: str
    ) -> ResolutionResult | None:
        """Resolve a track by title and artist.

        Args:
            title: Track title
            artist: Artist name

        Returns:
            ResolutionResult, or None if no provider finds a match

        Raises:
            ValidationError: If title or artist is None or blank
        """
        if title is None or not title.strip():
            raise ValidationError("Title must not be empty")
        if artist is None or not artist.strip():
            raise ValidationError("Artist must not be empty")

        title, artist = title.strip(), artist.strip()
        for provider in self._gateway.providers:
            seed = await self._gateway.search_by_title_artist(
                provider, title, artist, self._default_market
            )
            if seed is not None:
                return await self._cross_referencer.cross_reference(seed)

        logger.info("No provider found '%s - %s'", artist, title)
        return None
