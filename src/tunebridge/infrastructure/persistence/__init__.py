"""Persistence layer for the link index."""

from tunebridge.infrastructure.persistence.database import Database
from tunebridge.infrastructure.persistence.models import (
    Base,
    CacheEntryModel,
    InputLinkModel,
)
from tunebridge.infrastructure.persistence.repositories import SqlCacheIndex
from tunebridge.infrastructure.persistence.retry import is_lock_error, with_db_retry

__all__ = [
    "Base",
    "CacheEntryModel",
    "Database",
    "InputLinkModel",
    "SqlCacheIndex",
    "is_lock_error",
    "with_db_retry",
]
