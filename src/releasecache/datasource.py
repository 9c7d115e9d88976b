"""Package-level entry point: ``owner/name`` in, cached releases or tags out."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from releasecache.adapters import RELEASES_NAMESPACE, TAGS_NAMESPACE, ReleaseAdapter, TagAdapter
from releasecache.github import RELEASES_QUERY, TAGS_QUERY, GithubGraphqlSource, cache_key
from releasecache.models.github import FetchedRelease, FetchedTag
from releasecache.sync import SyncEngine

if TYPE_CHECKING:
    from datetime import datetime

    import httpx
    from pydantic import BaseModel

    from releasecache.config import Settings
    from releasecache.models.cache import StoredRelease, StoredTag
    from releasecache.protocols import RecordStore, StoredT

log = structlog.get_logger()


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0  # Calls holding or waiting for the lock


class ReleaseFeed:
    """Runs the release and tag sync engines for GitHub repositories.

    Calls for the same cache key are serialized with a per-key lock, so two
    coroutines asking for the same repository never merge into the same
    record at once. Different keys proceed concurrently. A key's lock is
    discarded once no call holds or waits for it.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: RecordStore,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._releases: SyncEngine[StoredRelease] = SyncEngine(
            store,
            ReleaseAdapter(),
            namespace=RELEASES_NAMESPACE,
            settings=settings.sync,
            clock=clock,
        )
        self._tags: SyncEngine[StoredTag] = SyncEngine(
            store,
            TagAdapter(),
            namespace=TAGS_NAMESPACE,
            settings=settings.sync,
            clock=clock,
        )
        self._locks: dict[tuple[str, str], _KeyLock] = {}

    async def get_releases(
        self, package_name: str, api_url: str | None = None
    ) -> list[StoredRelease]:
        """Published (non-draft) releases of ``package_name``, in no particular order.

        Raises:
            ReleaseCacheError: INVALID_PACKAGE_NAME if ``package_name`` is not
                ``owner/name``. Remote failures are never raised.
        """
        return await self._run(
            self._releases, RELEASES_QUERY, FetchedRelease, package_name, api_url
        )

    async def get_tags(self, package_name: str, api_url: str | None = None) -> list[StoredTag]:
        """Tags of ``package_name`` that point at a commit, in no particular order."""
        return await self._run(self._tags, TAGS_QUERY, FetchedTag, package_name, api_url)

    async def _run(
        self,
        engine: SyncEngine[StoredT],
        query: str,
        item_model: type[BaseModel],
        package_name: str,
        api_url: str | None,
    ) -> list[StoredT]:
        base_url = api_url or self._settings.github.api_url
        key = cache_key(base_url, package_name)
        source = GithubGraphqlSource(
            self._client,
            query=query,
            package_name=package_name,
            item_model=item_model,
            settings=self._settings.github,
            api_url=base_url,
        )

        lock_key = (engine.namespace, key)
        entry = self._locks.setdefault(lock_key, _KeyLock())
        entry.users += 1
        try:
            async with entry.lock:
                log.debug("sync_start", namespace=engine.namespace, key=key)
                return await engine.get_items(key, source)
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[lock_key]
