"""In-memory link index implementation."""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Any

from tunebridge.domain.entities import CacheIndexEntry
from tunebridge.domain.ports import ICacheIndex


class InMemoryCacheIndex(ICacheIndex):
    """Dictionary-backed link index.

    Mirrors the SQL layout: entries are keyed by record pointer and own a set of
    normalized input links; a link belongs to at most one entry. Good for tests and
    single-process setups - everything is gone on restart.
    """

    # Listen up future me, the _lock matters even without threads: upsert does a
    # read-modify-write across two dicts, and we want no other coroutine to observe
    # a link that points at an entry we're in the middle of moving.
    def __init__(self) -> None:
        self._entries: dict[str, CacheIndexEntry] = {}  # record_pointer -> entry
        self._links: dict[str, str] = {}  # normalized link -> record_pointer
        self._lock = asyncio.Lock()

    async def get_by_normalized_link(self, key: str) -> CacheIndexEntry | None:
        async with self._lock:
            pointer = self._links.get(key)
            if pointer is None:
                return None
            entry = self._entries[pointer]
            return replace(entry, key=key, input_links=set(entry.input_links))

    async def get_by_work_key(self, work_key: str) -> CacheIndexEntry | None:
        async with self._lock:
            for entry in self._entries.values():
                if entry.work_key == work_key:
                    return replace(entry, input_links=set(entry.input_links))
            return None

    async def upsert(
        self,
        key: str,
        pointer: str,
        work_key: str | None,
        created_at: datetime,
        last_looked_up_at: datetime,
    ) -> None:
        async with self._lock:
            old_pointer = self._links.get(key)
            if old_pointer is not None and old_pointer != pointer:
                old_entry = self._entries[old_pointer]
                old_entry.input_links.discard(key)
                if not old_entry.input_links:
                    del self._entries[old_pointer]

            entry = self._entries.get(pointer)
            if entry is None:
                entry = CacheIndexEntry(
                    key=key,
                    record_pointer=pointer,
                    work_key=work_key,
                    created_at=created_at,
                    last_looked_up_at=last_looked_up_at,
                )
                self._entries[pointer] = entry
            else:
                entry.work_key = work_key
                entry.last_looked_up_at = last_looked_up_at

            entry.input_links.add(key)
            self._links[key] = pointer

    async def touch(self, key: str, last_looked_up_at: datetime) -> None:
        async with self._lock:
            pointer = self._links.get(key)
            if pointer is not None:
                self._entries[pointer].last_looked_up_at = last_looked_up_at

    async def clear(self) -> None:
        """Drop every entry."""
        async with self._lock:
            self._entries.clear()
            self._links.clear()

    def get_stats(self) -> dict[str, Any]:
        """Index statistics (not locked - monitoring only)."""
        return {
            "entries": len(self._entries),
            "input_links": len(self._links),
        }
