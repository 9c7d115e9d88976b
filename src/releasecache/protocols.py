"""Collaborator interfaces the sync engine depends on.

Any object with matching methods satisfies these protocols; no inheritance
is needed. The engine never looks inside fetched items or stored values
beyond what the protocols expose.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from releasecache.models.cache import StoredItem

if TYPE_CHECKING:
    from releasecache.models.page import Page

FetchedT_co = TypeVar("FetchedT_co", bound=BaseModel, covariant=True)
FetchedT_contra = TypeVar("FetchedT_contra", bound=BaseModel, contravariant=True)
StoredT = TypeVar("StoredT", bound=StoredItem)


@runtime_checkable
class PageSource(Protocol[FetchedT_co]):
    """Newest-first paginated feed for a single package."""

    async def fetch_page(self, cursor: str | None) -> Page[FetchedT_co]:
        """Return the page following ``cursor`` (``None`` for the first page).

        Raises:
            ReleaseCacheError: on any transport or protocol failure.
        """
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Namespaced key/value persistence with a per-entry TTL."""

    async def get(self, namespace: str, key: str) -> dict[str, Any] | None: ...

    async def set(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        ttl_minutes: int,
    ) -> None: ...


class ItemAdapter(Protocol[FetchedT_contra, StoredT]):
    """Per-feed conversion and comparison hooks."""

    @property
    def item_model(self) -> type[StoredT]:
        """Stored item class, used to rebuild records read from the store."""
        ...

    def coerce(self, fetched: FetchedT_contra) -> StoredT | None:
        """Convert a fetched node, or return ``None`` to drop it."""
        ...

    def is_equivalent(self, old: StoredT, new: StoredT) -> bool: ...
