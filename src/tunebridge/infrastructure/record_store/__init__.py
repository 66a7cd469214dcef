"""Durable record store backends."""

from tunebridge.config import RecordStoreBackend, RecordStoreSettings
from tunebridge.domain.ports import IRecordStore
from tunebridge.infrastructure.record_store.atproto_store import AtProtoRecordStore, AtUri
from tunebridge.infrastructure.record_store.memory_store import InMemoryRecordStore


def build_record_store(settings: RecordStoreSettings) -> IRecordStore:
    """Create the record store selected by RECORD_STORE_BACKEND."""
    if settings.backend == RecordStoreBackend.ATPROTO:
        return AtProtoRecordStore(settings)
    return InMemoryRecordStore()


__all__ = [
    "AtProtoRecordStore",
    "AtUri",
    "InMemoryRecordStore",
    "build_record_store",
]
