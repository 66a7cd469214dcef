"""Cache coordinator for link resolution (two-tier cache + in-flight coalescing).

Hey future me - this is the heart of the "don't ask Spotify twice" logic. Two tiers:

1. The INDEX (local SQL): normalized link -> record pointer + timestamps
2. The RECORD STORE (durable): pointer -> DurableRecord (the actual results)

State machine per cache key:

    Idle ──lookup──► Resolving ──persist──► Cached
                        ▲                      │
                        └──── stale / record unreadable (self-heal)

lookup(key):
- index says fresh  -> read the record, bump last_looked_up_at, done (zero provider calls)
- record unreadable -> treat as miss and resolve again (SELF-HEALING, nothing deleted)
- stale or missing  -> resolve, then write the record (reusing the old pointer when
                       the work is the same) and upsert the index row

Concurrency: at most ONE resolution per key is in flight. Registering and finding
a flight happen under one lock (test-and-set). Late arrivals just await the same
task. When the last waiter goes away (request cancelled), the task is cancelled
too - but as long as anyone else is still waiting, it keeps running.

Writes take a lock per WORK key, not a global one: two links resolving the same
new song queue up and share one record, unrelated songs persist in parallel.

Persistence failures are logged and SWALLOWED. The caller still gets the resolved
result; the cache is an optimization, not a correctness requirement.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from tunebridge.domain.entities import (
    CacheIndexEntry,
    DurableRecord,
    Provider,
    ResolutionResult,
    utc_now,
)
from tunebridge.domain.exceptions import RecordStoreError, ValidationError
from tunebridge.domain.ports import ICacheIndex, IRecordStore

logger = logging.getLogger(__name__)

Resolver = Callable[[], Awaitable[ResolutionResult | None]]

DEFAULT_FRESHNESS = timedelta(days=3)


@dataclass
class _InFlight:
    """One running resolution plus the number of callers awaiting it."""

    task: asyncio.Task[ResolutionResult | None]
    waiters: int = 0


@dataclass
class _WorkLock:
    """Per-work persist lock plus the number of writers holding or awaiting it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass
class CacheStats:
    """Counters for monitoring cache effectiveness."""

    hits: int = 0
    misses: int = 0
    stale: int = 0
    self_heals: int = 0
    coalesced: int = 0
    persistence_failures: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale": self.stale,
            "self_heals": self.self_heals,
            "coalesced": self.coalesced,
            "persistence_failures": self.persistence_failures,
        }


class ResolutionCache:
    """Owns the link index + record store and coalesces concurrent lookups."""

    def __init__(
        self,
        index: ICacheIndex,
        store: IRecordStore,
        freshness: timedelta = DEFAULT_FRESHNESS,
        refresh_on_hit: bool = True,
        enabled: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize cache coordinator.

        Args:
            index: Local link index
            store: Durable record store
            freshness: How long an index entry counts as fresh (inclusive)
            refresh_on_hit: Bump last_looked_up_at on fresh hits
            enabled: False = always resolve, never read/write the cache
                     (in-flight coalescing still applies)
            clock: Time source (tests inject a fixed clock)
        """
        self._index = index
        self._store = store
        self._freshness = freshness
        self._refresh_on_hit = refresh_on_hit
        self._enabled = enabled
        self._clock = clock

        self._in_flight: dict[str, _InFlight] = {}
        self._lock = asyncio.Lock()
        # Record writes are serialized per work key, so two keys resolving to the
        # same NEW work fan in to one record. Different works persist in parallel.
        self._work_locks: dict[str, _WorkLock] = {}
        self.stats = CacheStats()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    # =========================================================================
    # LOOKUP (coalescing)
    # =========================================================================

    async def lookup(
        self,
        key: str,
        resolve: Resolver,
        primary: Provider | None = None,
    ) -> ResolutionResult | None:
        """Get the result for a cache key, resolving at most once per key at a time.

        Args:
            key: Normalized link (or "isrc:..."/"upc:..." for bare identifiers)
            resolve: Full resolution (providers + cross-referencing) for a miss
            primary: Provider to flag primary when the result comes from the record store

        Returns:
            ResolutionResult, or None if nothing could be resolved

        Raises:
            ValidationError: If key is empty
        """
        if not key:
            raise ValidationError("Cache key must not be empty")

        async with self._lock:
            flight = self._in_flight.get(key)
            if flight is None:
                task = asyncio.create_task(
                    self._lookup_once(key, resolve, primary),
                    name=f"resolve:{key}",
                )
                flight = _InFlight(task=task)
                self._in_flight[key] = flight
                task.add_done_callback(lambda done, k=key: self._settle(k, done))
            else:
                self.stats.coalesced += 1
                logger.debug("Coalescing lookup onto in-flight resolution: %s", key)
            flight.waiters += 1

        try:
            # shield() so ONE cancelled caller doesn't kill the shared task
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                logger.debug("Last waiter left, cancelling resolution: %s", key)
                # Unregister in the same step, a later lookup must start a fresh task
                if self._in_flight.get(key) is flight:
                    del self._in_flight[key]
                flight.task.cancel()

    def _settle(self, key: str, task: asyncio.Task[ResolutionResult | None]) -> None:
        current = self._in_flight.get(key)
        if current is not None and current.task is task:
            del self._in_flight[key]
        # Mark the exception as retrieved - waiters may all be gone already
        if not task.cancelled():
            task.exception()

    # =========================================================================
    # CACHE STATE MACHINE
    # =========================================================================

    async def _lookup_once(
        self, key: str, resolve: Resolver, primary: Provider | None
    ) -> ResolutionResult | None:
        if not self._enabled:
            return await resolve()

        now = self._clock()
        entry = await self._read_entry(key)

        if entry is None:
            self.stats.misses += 1
            logger.debug("Cache miss: %s", key)
        elif entry.is_fresh(self._freshness, now):
            cached = await self._read_record(entry)
            if cached is not None:
                self.stats.hits += 1
                logger.debug("Cache hit: %s -> %s", key, entry.record_pointer)
                if self._refresh_on_hit:
                    await self._touch(key, now)
                return ResolutionResult.from_record(cached, primary=primary)
            self.stats.self_heals += 1
            logger.info(
                "Cached record %s for %s unreadable, re-resolving",
                entry.record_pointer,
                key,
            )
        else:
            self.stats.stale += 1
            logger.debug("Cache entry stale: %s (last looked up %s)", key, entry.last_looked_up_at)

        resolved = await resolve()
        if not resolved:
            return None

        await self._persist(key, entry, resolved)
        return resolved

    async def _read_entry(self, key: str) -> CacheIndexEntry | None:
        try:
            return await self._index.get_by_normalized_link(key)
        except Exception as e:
            logger.warning("Cache index read failed for %s, treating as miss: %s", key, e)
            return None

    async def _read_record(self, entry: CacheIndexEntry) -> DurableRecord | None:
        try:
            record = await self._store.read(entry.record_pointer)
        except RecordStoreError as e:
            logger.warning("Record store read failed for %s: %s", entry.record_pointer, e)
            return None
        except Exception:
            logger.exception("Unexpected record store failure for %s", entry.record_pointer)
            return None

        if record is None or not record.results:
            return None
        return record

    async def _touch(self, key: str, now: datetime) -> None:
        try:
            await self._index.touch(key, now)
        except Exception as e:
            logger.warning("Failed to refresh cache timestamp for %s: %s", key, e)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _persist(
        self,
        key: str,
        entry: CacheIndexEntry | None,
        resolved: ResolutionResult,
    ) -> None:
        now = self._clock()
        work_key = resolved.work_key()
        record = resolved.to_record(looked_up_at=now)

        try:
            async with self._work_lock(work_key):
                pointer = await self._write_record(entry, work_key, record)
                await self._index.upsert(
                    key,
                    pointer,
                    work_key,
                    created_at=entry.created_at if entry else now,
                    last_looked_up_at=now,
                )
            logger.info("Cached %s -> %s", key, pointer)
        except Exception:
            # Resolved-but-uncached is still a valid answer for the caller
            self.stats.persistence_failures += 1
            logger.exception("Failed to cache result for %s, continuing without caching", key)

    @asynccontextmanager
    async def _work_lock(self, work_key: str | None) -> AsyncIterator[None]:
        if not work_key:
            yield
            return
        holder = self._work_locks.get(work_key)
        if holder is None:
            holder = self._work_locks[work_key] = _WorkLock()
        holder.users += 1
        try:
            async with holder.lock:
                yield
        finally:
            holder.users -= 1
            if holder.users == 0:
                del self._work_locks[work_key]

    # Hey future me - pointer reuse rules:
    # 1. Stale entry for the SAME work -> overwrite its record in place
    # 2. Some other link already cached this work -> overwrite THAT record (fan-in)
    # 3. Otherwise (or the old pointer is gone) -> brand new record
    async def _write_record(
        self,
        entry: CacheIndexEntry | None,
        work_key: str | None,
        record: DurableRecord,
    ) -> str:
        target = entry if entry is not None and entry.work_key == work_key else None
        if target is None and work_key:
            target = await self._index.get_by_work_key(work_key)

        if target is not None:
            if await self._store.update(target.record_pointer, record):
                return target.record_pointer
            logger.info("Record %s no longer exists, creating a new one", target.record_pointer)

        return await self._store.create(record)

    def get_stats(self) -> dict[str, int]:
        """Cache statistics for the health endpoint."""
        return {**self.stats.to_dict(), "in_flight": self.in_flight_count}
