"""Tests for SqlCacheIndex against a real (file-backed) SQLite database."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from pytest_mock import MockerFixture
from sqlalchemy.exc import OperationalError

from tunebridge.config import DatabaseSettings
from tunebridge.domain.exceptions import PersistenceError
from tunebridge.infrastructure.persistence import Database, SqlCacheIndex

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
SPOTIFY_KEY = "open.spotify.com/track/abc123"
DEEZER_KEY = "deezer.com/track/3135556"


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path}/index.db"))
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def index(database: Database) -> SqlCacheIndex:
    return SqlCacheIndex(database)


class TestLookup:
    """Test reading entries back."""

    async def test_unknown_link(self, index: SqlCacheIndex) -> None:
        """Test that an unindexed link is None."""
        assert await index.get_by_normalized_link(SPOTIFY_KEY) is None

    async def test_upsert_then_read(self, index: SqlCacheIndex) -> None:
        """Test that every field survives the round trip through SQLite."""
        await index.upsert(SPOTIFY_KEY, "mem://one", "isrc:USRC17607839", T0, T0)

        entry = await index.get_by_normalized_link(SPOTIFY_KEY)

        assert entry is not None
        assert entry.key == SPOTIFY_KEY
        assert entry.record_pointer == "mem://one"
        assert entry.work_key == "isrc:USRC17607839"
        assert entry.created_at == T0
        assert entry.last_looked_up_at == T0
        assert entry.input_links == {SPOTIFY_KEY}

    async def test_get_by_work_key(self, index: SqlCacheIndex) -> None:
        """Test finding an entry through its work key."""
        await index.upsert(SPOTIFY_KEY, "mem://one", "isrc:USRC17607839", T0, T0)

        entry = await index.get_by_work_key("isrc:USRC17607839")

        assert entry is not None and entry.record_pointer == "mem://one"
        assert await index.get_by_work_key("isrc:GBAYE0601498") is None


class TestUpsert:
    """Test link fan-in and re-parenting."""

    async def test_second_link_joins_existing_entry(self, index: SqlCacheIndex) -> None:
        """Test that two links for one record share a single entry."""
        await index.upsert(SPOTIFY_KEY, "mem://one", None, T0, T0)
        later = T0 + timedelta(hours=1)
        await index.upsert(DEEZER_KEY, "mem://one", None, later, later)

        entry = await index.get_by_normalized_link(DEEZER_KEY)

        assert entry is not None
        assert entry.input_links == {SPOTIFY_KEY, DEEZER_KEY}
        assert entry.created_at == T0
        assert entry.last_looked_up_at == later
        assert await index.get_stats() == {"entries": 1, "input_links": 2}

    async def test_link_moves_to_new_pointer(self, index: SqlCacheIndex) -> None:
        """Test that a moved link leaves the other links of its old entry alone."""
        await index.upsert(SPOTIFY_KEY, "mem://one", None, T0, T0)
        await index.upsert(DEEZER_KEY, "mem://one", None, T0, T0)

        await index.upsert(SPOTIFY_KEY, "mem://two", None, T0, T0)

        moved = await index.get_by_normalized_link(SPOTIFY_KEY)
        stayed = await index.get_by_normalized_link(DEEZER_KEY)
        assert moved is not None and moved.record_pointer == "mem://two"
        assert stayed is not None and stayed.record_pointer == "mem://one"
        assert stayed.input_links == {DEEZER_KEY}

    async def test_orphaned_entry_is_deleted(self, index: SqlCacheIndex) -> None:
        """Test that an entry whose last link moved away is dropped."""
        await index.upsert(SPOTIFY_KEY, "mem://one", "isrc:OLD000000001", T0, T0)

        await index.upsert(SPOTIFY_KEY, "mem://two", "isrc:NEW000000001", T0, T0)

        assert await index.get_by_work_key("isrc:OLD000000001") is None
        assert await index.get_stats() == {"entries": 1, "input_links": 1}

    async def test_touch(self, index: SqlCacheIndex) -> None:
        """Test that touch only moves last_looked_up_at."""
        await index.upsert(SPOTIFY_KEY, "mem://one", None, T0, T0)
        later = T0 + timedelta(days=2)

        await index.touch(SPOTIFY_KEY, later)
        await index.touch("never.indexed/link", later)

        entry = await index.get_by_normalized_link(SPOTIFY_KEY)
        assert entry is not None
        assert entry.last_looked_up_at == later
        assert entry.created_at == T0


class TestErrors:
    """Test error translation."""

    async def test_sqlalchemy_error_becomes_persistence_error(
        self, index: SqlCacheIndex, mocker: MockerFixture
    ) -> None:
        """Test that driver errors come out as PersistenceError."""
        mocker.patch.object(
            index,
            "_get_by_link",
            side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")),
        )

        with pytest.raises(PersistenceError):
            await index.get_by_normalized_link(SPOTIFY_KEY)
