from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel


class StoredItem(BaseModel):
    """Persisted form of one feed entry. ``version`` is unique within a record."""

    version: str
    release_timestamp: datetime  # When the entry was published upstream


class StoredRelease(StoredItem):
    is_stable: bool
    url: str
    id: int
    name: str | None = None
    description: str | None = None


class StoredTag(StoredItem):
    hash: str  # Commit sha the tag points at


T = TypeVar("T", bound=StoredItem)


class CacheRecord(BaseModel, Generic[T]):
    """Everything stored under one cache key."""

    created_at: datetime
    updated_at: datetime
    items: dict[str, T] = {}  # version → item
