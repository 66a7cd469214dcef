"""Cross-referencing a seed result across every other provider.

Hey future me - given ONE provider's answer (the seed), we ask all the others
"do you have this too?" concurrently:

    seed has ISRC/UPC  ──► Q.get_by_identifier(...)
                            └─ nothing? and search_fallback on ──► Q.search_by_title_artist(...)
    seed has no id     ──► Q.search_by_title_artist(...)

Partial coverage is NORMAL. Deezer timing out just means no Deezer entry - the
seed is always in the result, flagged primary.
"""

import asyncio
import logging
from dataclasses import replace

from tunebridge.application.services.provider_gateway import ProviderGateway
from tunebridge.domain.entities import Provider, ProviderResult, ResolutionResult
from tunebridge.domain.value_objects import identifier_kind_for, sanitize_for_kind

logger = logging.getLogger(__name__)


class CrossReferencer:
    """Builds a full cross-platform ResolutionResult from one seed."""

    def __init__(self, gateway: ProviderGateway, search_fallback: bool = True) -> None:
        """Initialize cross-referencer.

        Args:
            gateway: Provider gateway (absorbs provider failures)
            search_fallback: Search by title/artist when an identifier lookup misses
        """
        self._gateway = gateway
        self._search_fallback = search_fallback

    async def cross_reference(
        self, seed: ProviderResult, market: str | None = None
    ) -> ResolutionResult:
        """Query every other provider for the seed's work.

        Args:
            seed: Result from the directly-queried provider
            market: Market to query in (defaults to the seed's market region)

        Returns:
            ResolutionResult with the seed marked primary plus every match found
        """
        market = market or seed.market_region
        resolution = ResolutionResult()
        resolution.add(seed.as_primary())

        others = [provider for provider in self._gateway.providers if provider != seed.provider]
        if not others:
            return resolution

        # All lookups run concurrently; the gateway never raises (except on cancel),
        # so gather settles only after every provider answered or timed out.
        found = await asyncio.gather(
            *(self._lookup(provider, seed, market) for provider in others)
        )

        for provider, result in zip(others, found, strict=True):
            if result is None:
                continue
            if result.provider != provider:
                result = replace(result, provider=provider)
            resolution.add(result.as_secondary())

        logger.info(
            "Cross-referenced %s '%s - %s': %d/%d providers matched",
            seed.provider.value,
            seed.artist,
            seed.title,
            len(resolution.results) - 1,
            len(others),
        )
        return resolution

    async def _lookup(
        self, provider: Provider, seed: ProviderResult, market: str
    ) -> ProviderResult | None:
        identifier = identifier_kind_for(seed.external_id, seed.is_album)
        if identifier is not None:
            kind, value = identifier
            result = await self._gateway.get_by_identifier(provider, kind, value, market)
            if result is not None or not self._search_fallback:
                return result
            logger.debug(
                "%s has no %s %s, falling back to title/artist search",
                provider.value,
                kind.value,
                value,
            )

        if not seed.title:
            return None

        return await self._gateway.search_by_title_artist(
            provider,
            title=sanitize_for_kind(seed.title, seed.is_album),
            artist=seed.artist,
            market=market,
            is_album=seed.is_album,
        )
