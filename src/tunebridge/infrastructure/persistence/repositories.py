"""SQL implementation of the link index."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from tunebridge.domain.entities import CacheIndexEntry, ensure_utc_aware
from tunebridge.domain.exceptions import PersistenceError
from tunebridge.domain.ports import ICacheIndex

from .database import Database
from .models import CacheEntryModel, InputLinkModel
from .retry import with_db_retry

logger = logging.getLogger(__name__)


def _to_entity(model: CacheEntryModel, key: str | None = None) -> CacheIndexEntry:
    links = {link.link for link in model.input_links}
    return CacheIndexEntry(
        key=key if key is not None else min(links, default=""),
        record_pointer=model.record_pointer,
        work_key=model.work_key,
        created_at=ensure_utc_aware(model.created_at),
        last_looked_up_at=ensure_utc_aware(model.last_looked_up_at),
        input_links=links,
    )


class SqlCacheIndex(ICacheIndex):
    """Link index backed by the cache_entries/input_links tables.

    Hey future me - every method opens its own short session_scope. The index is
    shared by all concurrent lookups, so holding one session across awaits would
    make them trip over each other. SQLAlchemy errors never leak out of here: they
    come out as PersistenceError, which ResolutionCache knows how to swallow.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_by_normalized_link(self, key: str) -> CacheIndexEntry | None:
        try:
            return await self._get_by_link(key)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read index entry for '{key}': {e}") from e

    async def get_by_work_key(self, work_key: str) -> CacheIndexEntry | None:
        try:
            async with self._db.session_scope() as session:
                stmt = (
                    select(CacheEntryModel)
                    .where(CacheEntryModel.work_key == work_key)
                    .options(selectinload(CacheEntryModel.input_links))
                    .order_by(CacheEntryModel.created_at)
                    .limit(1)
                )
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
                return _to_entity(model) if model else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read index entry for work '{work_key}': {e}") from e

    async def upsert(
        self,
        key: str,
        pointer: str,
        work_key: str | None,
        created_at: datetime,
        last_looked_up_at: datetime,
    ) -> None:
        try:
            await self._upsert(key, pointer, work_key, created_at, last_looked_up_at)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to index '{key}' -> '{pointer}': {e}") from e

    async def touch(self, key: str, last_looked_up_at: datetime) -> None:
        try:
            await self._touch(key, last_looked_up_at)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to touch index entry for '{key}': {e}") from e

    async def get_stats(self) -> dict[str, Any]:
        """Row counts for the health endpoint."""
        async with self._db.session_scope() as session:
            entries = await session.scalar(select(func.count()).select_from(CacheEntryModel))
            links = await session.scalar(select(func.count()).select_from(InputLinkModel))
        return {"entries": entries or 0, "input_links": links or 0}

    # =========================================================================
    # Internals (retried on SQLite lock errors)
    # =========================================================================

    @with_db_retry()
    async def _get_by_link(self, key: str) -> CacheIndexEntry | None:
        async with self._db.session_scope() as session:
            stmt = (
                select(CacheEntryModel)
                .join(InputLinkModel, InputLinkModel.cache_entry_id == CacheEntryModel.id)
                .where(InputLinkModel.link == key)
                .options(selectinload(CacheEntryModel.input_links))
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _to_entity(model, key) if model else None

    # Listen up, this is the fan-in step: a link can only belong to ONE entry, so if
    # it moves to a new pointer we re-parent it, and an entry left with zero links is
    # deleted (nothing could ever find it again). created_at of an existing entry is
    # never overwritten.
    @with_db_retry()
    async def _upsert(
        self,
        key: str,
        pointer: str,
        work_key: str | None,
        created_at: datetime,
        last_looked_up_at: datetime,
    ) -> None:
        async with self._db.session_scope() as session:
            link_row = (
                await session.execute(select(InputLinkModel).where(InputLinkModel.link == key))
            ).scalar_one_or_none()
            entry = (
                await session.execute(
                    select(CacheEntryModel).where(CacheEntryModel.record_pointer == pointer)
                )
            ).scalar_one_or_none()

            if entry is None:
                entry = CacheEntryModel(
                    record_pointer=pointer,
                    work_key=work_key,
                    created_at=created_at,
                    last_looked_up_at=last_looked_up_at,
                )
                session.add(entry)
                await session.flush()
            else:
                entry.work_key = work_key
                entry.last_looked_up_at = last_looked_up_at

            if link_row is None:
                session.add(InputLinkModel(link=key, cache_entry_id=entry.id))
                return

            old_entry_id = link_row.cache_entry_id
            if old_entry_id == entry.id:
                return

            link_row.cache_entry_id = entry.id
            await session.flush()

            remaining = await session.scalar(
                select(func.count())
                .select_from(InputLinkModel)
                .where(InputLinkModel.cache_entry_id == old_entry_id)
            )
            if not remaining:
                await session.execute(
                    delete(CacheEntryModel).where(CacheEntryModel.id == old_entry_id)
                )
                logger.debug("Dropped orphaned cache entry %s", old_entry_id)

    @with_db_retry()
    async def _touch(self, key: str, last_looked_up_at: datetime) -> None:
        async with self._db.session_scope() as session:
            entry_id = select(InputLinkModel.cache_entry_id).where(InputLinkModel.link == key)
            await session.execute(
                update(CacheEntryModel)
                .where(CacheEntryModel.id.in_(entry_id.scalar_subquery()))
                .values(last_looked_up_at=last_looked_up_at)
            )
