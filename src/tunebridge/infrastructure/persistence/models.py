"""SQLAlchemy ORM models for the link index."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from tunebridge.domain.entities import utc_now


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me, one CacheEntryModel row == one durable record. Many input links can
# point at the same row (spotify + apple + deezer links of one song), which is why the
# links live in their own table. record_pointer is unique: two rows pointing at the same
# remote record would split the timestamps and make freshness checks lie.
class CacheEntryModel(Base):
    """One cached work: record pointer plus freshness timestamps."""

    __tablename__ = "cache_entries"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    record_pointer: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    work_key: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    last_looked_up_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    input_links: Mapped[list["InputLinkModel"]] = relationship(
        back_populates="cache_entry",
        cascade="all, delete-orphan",
    )


class InputLinkModel(Base):
    """A normalized link (or isrc:/upc: key) that resolves to a cache entry."""

    __tablename__ = "input_links"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    link: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    cache_entry_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("cache_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    cache_entry: Mapped[CacheEntryModel] = relationship(back_populates="input_links")
