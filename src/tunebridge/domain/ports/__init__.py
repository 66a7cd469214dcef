"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime

from tunebridge.domain.entities import CacheIndexEntry, DurableRecord
from tunebridge.domain.ports.music_provider import (
    IMusicProvider,
    IMusicProviderRegistry,
)


# Hey future me - the durable store is the AUTHORITATIVE copy of a resolved work.
# Pointers are opaque strings (at:// URIs for the AT Protocol backend, mem:// for
# the in-memory one). Never stuff input links in here - DurableRecord can't even
# carry them, and that's the point.
class IRecordStore(ABC):
    """Interface for the durable record store."""

    @abstractmethod
    async def create(self, record: DurableRecord) -> str:
        """Store a new record.

        Returns:
            Pointer to the stored record

        Raises:
            RecordStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def read(self, pointer: str) -> DurableRecord | None:
        """Fetch a record.

        Returns:
            The record, or None if nothing lives at the pointer

        Raises:
            RecordStoreInconsistencyError: If the stored payload is unusable
            RecordStoreError: If the store can't be reached
        """
        pass

    @abstractmethod
    async def update(self, pointer: str, record: DurableRecord) -> bool:
        """Overwrite the record at pointer.

        Returns:
            True on success, False if the pointer doesn't exist (anymore)

        Raises:
            RecordStoreError: If the store can't be reached
        """
        pass

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None


class ICacheIndex(ABC):
    """Interface for the local link index (normalized link -> record pointer)."""

    @abstractmethod
    async def get_by_normalized_link(self, key: str) -> CacheIndexEntry | None:
        """Get the entry indexed under a normalized link."""
        pass

    @abstractmethod
    async def get_by_work_key(self, work_key: str) -> CacheIndexEntry | None:
        """Get any entry for a work identity (used to fan in new links)."""
        pass

    @abstractmethod
    async def upsert(
        self,
        key: str,
        pointer: str,
        work_key: str | None,
        created_at: datetime,
        last_looked_up_at: datetime,
    ) -> None:
        """Insert or update the entry for key.

        If key already belongs to an entry, that entry is repointed and its
        timestamp refreshed (created_at is kept). Otherwise key is attached to
        the entry owning `pointer`, or a new entry is created.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def touch(self, key: str, last_looked_up_at: datetime) -> None:
        """Bump last_looked_up_at for the entry owning key."""
        pass


__all__ = [
    "ICacheIndex",
    "IMusicProvider",
    "IMusicProviderRegistry",
    "IRecordStore",
]
