"""Incremental synchronization of a newest-first feed into the record store.

A call either walks the feed to the end and drops versions that disappeared
upstream (forced resync), or walks only until it meets a version that is
already cached and old enough to be considered immutable (incremental).
Which one runs depends on how long ago the record was last written.

A page fetch failure aborts the pass: nothing is written and the caller gets
the items exactly as they were loaded.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Generic

import structlog
from pydantic import BaseModel, ValidationError

from releasecache.config import SyncSettings
from releasecache.errors import ErrorCode, ReleaseCacheError
from releasecache.models.cache import CacheRecord
from releasecache.protocols import StoredT

if TYPE_CHECKING:
    from releasecache.models.page import Page
    from releasecache.protocols import ItemAdapter, PageSource, RecordStore

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncMode(StrEnum):
    FORCED = "forced"
    INCREMENTAL = "incremental"


@dataclass
class _WalkResult(Generic[StoredT]):
    """Outcome of one completed page walk."""

    items: dict[str, StoredT]
    # Versions observed as non-dropped items; drives deletion detection
    seen: set[str] = field(default_factory=set)
    stopped_early: bool = False
    pages: int = 0
    added: int = 0
    updated: int = 0
    unchanged: int = 0


class SyncEngine(Generic[StoredT]):
    """Keeps one namespace of the record store in step with a remote feed.

    The engine holds no per-key state between calls; everything it knows about
    a key comes from the store at the start of ``get_items``. Callers must not
    run two syncs for the same key at once.
    """

    def __init__(
        self,
        store: RecordStore,
        adapter: ItemAdapter[BaseModel, StoredT],
        *,
        namespace: str,
        settings: SyncSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._namespace = namespace
        self._settings = settings or SyncSettings()
        self._clock = clock or _utcnow
        self._record_model = CacheRecord[adapter.item_model]

    @property
    def namespace(self) -> str:
        return self._namespace

    async def get_items(self, key: str, source: PageSource[BaseModel]) -> list[StoredT]:
        """Return every known item for ``key``, syncing with ``source`` first."""
        now = self._clock()
        record = await self._load(key, now)
        mode = self._select_mode(record, now)
        previous: dict[str, StoredT] = dict(record.items) if record else {}

        try:
            walk = await self._walk(source, previous, mode, now)
        except ReleaseCacheError as exc:
            log.warning(
                "sync_aborted",
                namespace=self._namespace,
                key=key,
                mode=mode,
                code=exc.code,
                error=exc.message,
            )
            return list(previous.values())

        merged = walk.items
        removed = 0
        if mode is SyncMode.FORCED and not walk.stopped_early:
            for version in previous.keys() - walk.seen:
                del merged[version]
                removed += 1

        created_at = record.created_at if record else now
        new_record = self._record_model(
            created_at=created_at,
            updated_at=now,
            items=merged,
        )
        ttl_minutes = self._ttl_minutes(created_at, now)
        await self._store.set(
            self._namespace,
            key,
            new_record.model_dump(mode="json"),
            ttl_minutes,
        )

        log.info(
            "sync_complete",
            namespace=self._namespace,
            key=key,
            mode=mode,
            pages=walk.pages,
            stopped_early=walk.stopped_early,
            added=walk.added,
            updated=walk.updated,
            unchanged=walk.unchanged,
            removed=removed,
            ttl_minutes=ttl_minutes,
        )
        return list(merged.values())

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _load(self, key: str, now: datetime) -> CacheRecord[StoredT] | None:
        """Read the stored record, treating unreadable or retired ones as absent."""
        raw = await self._store.get(self._namespace, key)
        if raw is None:
            return None

        try:
            record = self._record_model.model_validate(raw)
        except ValidationError:
            log.warning(
                "cache_record_invalid", namespace=self._namespace, key=key, exc_info=True
            )
            return None

        retention = timedelta(minutes=self._settings.retention_minutes)
        if now - record.created_at >= retention:
            log.debug(
                "cache_record_retired",
                namespace=self._namespace,
                key=key,
                created_at=record.created_at.isoformat(),
            )
            return None
        return record

    def _select_mode(self, record: CacheRecord[StoredT] | None, now: datetime) -> SyncMode:
        if record is None:
            return SyncMode.FORCED
        reset_delta = timedelta(minutes=self._settings.reset_delta_minutes)
        if now - record.updated_at >= reset_delta:
            return SyncMode.FORCED
        return SyncMode.INCREMENTAL

    async def _walk(
        self,
        source: PageSource[BaseModel],
        previous: dict[str, StoredT],
        mode: SyncMode,
        now: datetime,
    ) -> _WalkResult[StoredT]:
        """Page through ``source`` newest-first, merging into a copy of ``previous``.

        Raises:
            ReleaseCacheError: for any page source failure; ``previous`` is
                left untouched.
        """
        result = _WalkResult(items=dict(previous))
        stable_after = timedelta(days=self._settings.unstable_days)
        cursor: str | None = None

        while True:
            page = await self._fetch(source, cursor)
            result.pages += 1

            for fetched in page.items:
                candidate = self._adapter.coerce(fetched)
                if candidate is None:
                    continue

                version = candidate.version
                old = previous.get(version)
                if (
                    mode is SyncMode.INCREMENTAL
                    and old is not None
                    and now - candidate.release_timestamp >= stable_after
                ):
                    result.stopped_early = True
                    return result

                result.seen.add(version)
                if old is None:
                    result.added += 1
                    result.items[version] = candidate
                elif self._adapter.is_equivalent(old, candidate):
                    result.unchanged += 1
                else:
                    result.updated += 1
                    result.items[version] = candidate

            if not page.has_next_page:
                return result
            cursor = page.end_cursor

    async def _fetch(self, source: PageSource[BaseModel], cursor: str | None) -> Page[BaseModel]:
        try:
            return await source.fetch_page(cursor)
        except ReleaseCacheError:
            raise
        except Exception as exc:
            # A page source that breaks its contract still must not fail the caller.
            log.warning(
                "page_source_failed", namespace=self._namespace, cursor=cursor, exc_info=True
            )
            raise ReleaseCacheError(
                ErrorCode.PAGE_FETCH_FAILED,
                f"Page source raised {type(exc).__name__}: {exc}",
                recoverable=True,
            ) from exc

    def _ttl_minutes(self, created_at: datetime, now: datetime) -> int:
        """Remaining lifetime so the record expires a fixed time after creation."""
        elapsed_minutes = int((now - created_at).total_seconds() // 60)
        return self._settings.retention_minutes - elapsed_minutes
