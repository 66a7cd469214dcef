"""In-process durable record store."""

import asyncio
import logging
import uuid
from typing import Any

from tunebridge.domain.entities import DurableRecord
from tunebridge.domain.exceptions import RecordStoreInconsistencyError
from tunebridge.domain.ports import IRecordStore

logger = logging.getLogger(__name__)

POINTER_SCHEME = "mem://"


class InMemoryRecordStore(IRecordStore):
    """Keeps records as serialized dicts keyed by mem://<uuid> pointers.

    Records are stored in their wire layout (to_dict) rather than as objects, so a
    read goes through the same parsing as the AT Protocol backend and callers can
    never mutate what's stored.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: DurableRecord) -> str:
        pointer = f"{POINTER_SCHEME}{uuid.uuid4()}"
        async with self._lock:
            self._records[pointer] = record.to_dict()
        logger.debug("Created record %s", pointer)
        return pointer

    async def read(self, pointer: str) -> DurableRecord | None:
        async with self._lock:
            data = self._records.get(pointer)
        if data is None:
            return None
        try:
            return DurableRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RecordStoreInconsistencyError(pointer, str(e)) from e

    async def update(self, pointer: str, record: DurableRecord) -> bool:
        async with self._lock:
            if pointer not in self._records:
                return False
            self._records[pointer] = record.to_dict()
        return True

    # Test helpers --------------------------------------------------------------

    async def delete(self, pointer: str) -> None:
        """Remove a record (simulates it vanishing from the remote store)."""
        async with self._lock:
            self._records.pop(pointer, None)

    async def put_raw(self, pointer: str, data: dict[str, Any]) -> None:
        """Store an arbitrary payload under pointer, bypassing validation."""
        async with self._lock:
            self._records[pointer] = data

    def __len__(self) -> int:
        return len(self._records)
