"""Provider gateway - one failure-absorbing async front for every provider adapter.

Hey future me - this is THE boundary where provider failures stop! Adapters are
allowed to raise whatever they like (httpx errors, ProviderUnavailableError,
RateLimitExceededError, TimeoutError, a KeyError from a weird JSON payload...).
Every one of those becomes None here, with a log line. Callers only ever see
"a result" or "no result" - a flaky Tidal must never kill a whole batch.

Each call also gets its OWN timeout (providers.timeout_seconds). Expiry is just
another None. CancelledError is NOT swallowed - if the request is cancelled, the
provider calls must die with it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from tunebridge.domain.entities import (
    EntityKind,
    IdentifierKind,
    Provider,
    ProviderResult,
)
from tunebridge.domain.exceptions import DomainException, RateLimitExceededError
from tunebridge.domain.ports import IMusicProvider, IMusicProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class ProviderGateway:
    """Uniform async contract over the registered provider adapters."""

    def __init__(
        self,
        registry: IMusicProviderRegistry,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        enabled: Sequence[Provider] | None = None,
    ) -> None:
        """Initialize gateway.

        Args:
            registry: Provider registry to dispatch to
            timeout_seconds: Independent timeout for every single provider call
            enabled: Providers to use, in seed-search order (None = all registered)
        """
        self._registry = registry
        self._timeout = timeout_seconds
        self._enabled = list(enabled) if enabled is not None else None

    @property
    def providers(self) -> list[Provider]:
        """Usable providers: enabled AND registered, in configured order."""
        registered = [p.provider_type for p in self._registry.get_all_providers()]
        if self._enabled is None:
            return registered
        return [provider for provider in self._enabled if provider in registered]

    async def get_by_native_id(
        self,
        provider: Provider,
        entity_kind: EntityKind,
        native_id: str,
        market: str,
    ) -> ProviderResult | None:
        return await self._call(
            provider,
            f"get_by_native_id({entity_kind.value}, {native_id})",
            lambda adapter: adapter.get_by_native_id(entity_kind, native_id, market),
        )

    async def get_by_identifier(
        self,
        provider: Provider,
        identifier_kind: IdentifierKind,
        value: str,
        market: str,
    ) -> ProviderResult | None:
        return await self._call(
            provider,
            f"get_by_identifier({identifier_kind.value}:{value})",
            lambda adapter: adapter.get_by_identifier(identifier_kind, value, market),
        )

    async def search_by_title_artist(
        self,
        provider: Provider,
        title: str,
        artist: str,
        market: str,
        is_album: bool | None = None,
    ) -> ProviderResult | None:
        return await self._call(
            provider,
            f"search_by_title_artist({artist!r}, {title!r})",
            lambda adapter: adapter.search_by_title_artist(
                title, artist, market, is_album=is_album
            ),
        )

    # Yo, no provider failure gets past this method, only cancellation does. Known
    # failure types log a short warning, anything else logs the full traceback.
    async def _call(
        self,
        provider: Provider,
        operation: str,
        call: Callable[[IMusicProvider], Awaitable[ProviderResult | None]],
    ) -> ProviderResult | None:
        adapter = self._registry.get_provider(provider)
        if adapter is None:
            logger.debug("Provider %s not registered, skipping %s", provider.value, operation)
            return None

        try:
            async with asyncio.timeout(self._timeout):
                result = await call(adapter)
        except TimeoutError:
            logger.warning(
                "Provider %s timed out after %.1fs: %s",
                provider.value,
                self._timeout,
                operation,
            )
            return None
        except RateLimitExceededError as e:
            logger.warning(
                "Provider %s rate limited (retry after %s): %s",
                provider.value,
                e.retry_after,
                operation,
            )
            return None
        except DomainException as e:
            logger.warning("Provider %s unavailable: %s (%s)", provider.value, e.message, operation)
            return None
        except Exception:
            logger.exception("Provider %s failed unexpectedly: %s", provider.value, operation)
            return None

        if result is None:
            logger.debug("Provider %s found nothing: %s", provider.value, operation)
        return result
