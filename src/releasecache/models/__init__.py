from __future__ import annotations

from releasecache.models.cache import CacheRecord, StoredItem, StoredRelease, StoredTag
from releasecache.models.github import (
    AnnotatedTagTarget,
    CommitTarget,
    FetchedRelease,
    FetchedTag,
    OtherTarget,
)
from releasecache.models.page import Page

__all__ = [
    # cache
    "CacheRecord",
    "StoredItem",
    "StoredRelease",
    "StoredTag",
    # feed
    "Page",
    "FetchedRelease",
    "FetchedTag",
    "CommitTarget",
    "AnnotatedTagTarget",
    "OtherTarget",
]
