"""Unit tests for releasecache.store."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite

if TYPE_CHECKING:
    from releasecache.store import SqliteRecordStore

NS = "github-releases-datasource-v2"
KEY = "https://api.github.com/:foo:bar"
VALUE = {
    "created_at": "2022-06-14T18:30:30Z",
    "updated_at": "2022-06-15T18:30:30Z",
    "items": {"v1": {"version": "v1", "release_timestamp": "2022-06-12T18:30:30Z"}},
}


async def _expire(store: SqliteRecordStore, key: str, days_ago: int = 1) -> None:
    """Helper: move a record's expires_at into the past."""
    past = (datetime.now(UTC) - timedelta(days=days_ago)).isoformat()
    await store._db.execute(
        "UPDATE record_cache SET expires_at = ? WHERE cache_key = ?",
        (past, key),
    )
    await store._db.commit()


# ---------------------------------------------------------------------------
# get / set
# ---------------------------------------------------------------------------


class TestRecords:
    async def test_set_and_get(self, store: SqliteRecordStore) -> None:
        await store.set(NS, KEY, VALUE, ttl_minutes=60)
        assert await store.get(NS, KEY) == VALUE

    async def test_get_nonexistent_returns_none(self, store: SqliteRecordStore) -> None:
        assert await store.get(NS, "nonexistent") is None

    async def test_namespaces_are_isolated(self, store: SqliteRecordStore) -> None:
        await store.set(NS, KEY, VALUE, ttl_minutes=60)
        assert await store.get("github-tags-datasource-v2", KEY) is None

    async def test_expired_record_is_a_miss(self, store: SqliteRecordStore) -> None:
        await store.set(NS, KEY, VALUE, ttl_minutes=60)
        await _expire(store, KEY)
        assert await store.get(NS, KEY) is None

    async def test_ttl_sets_expiry(self, store: SqliteRecordStore) -> None:
        before = datetime.now(UTC)
        await store.set(NS, KEY, VALUE, ttl_minutes=8640)
        cursor = await store._db.execute(
            "SELECT expires_at FROM record_cache WHERE cache_key = ?", (KEY,)
        )
        row = await cursor.fetchone()
        assert row is not None
        expires_at = datetime.fromisoformat(row[0])
        assert before + timedelta(minutes=8640) <= expires_at
        assert expires_at < before + timedelta(minutes=8641)

    async def test_upsert_overwrites(self, store: SqliteRecordStore) -> None:
        await store.set(NS, KEY, {"items": {}}, ttl_minutes=60)
        await store.set(NS, KEY, VALUE, ttl_minutes=60)
        assert await store.get(NS, KEY) == VALUE

    async def test_corrupt_value_returns_none(self, store: SqliteRecordStore) -> None:
        await store.set(NS, KEY, VALUE, ttl_minutes=60)
        await store._db.execute(
            "UPDATE record_cache SET value = ? WHERE cache_key = ?", ("{not json", KEY)
        )
        await store._db.commit()
        assert await store.get(NS, KEY) is None

    async def test_read_failure_returns_none(self, store: SqliteRecordStore) -> None:
        """Simulate a database read error: should return None, not raise."""
        original_execute = store._db.execute

        async def failing_execute(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        store._db.execute = failing_execute  # type: ignore[assignment]
        assert await store.get(NS, KEY) is None
        store._db.execute = original_execute  # type: ignore[assignment]

    async def test_write_failure_does_not_raise(self, store: SqliteRecordStore) -> None:
        """Simulate a database write error: should not raise."""
        original_execute = store._db.execute

        async def failing_execute(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        store._db.execute = failing_execute  # type: ignore[assignment]
        # This should not raise
        await store.set(NS, KEY, VALUE, ttl_minutes=60)
        store._db.execute = original_execute  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# cleanup_expired
# ---------------------------------------------------------------------------


class TestCleanupExpired:
    async def test_deletes_expired_records(self, store: SqliteRecordStore) -> None:
        await store.set(NS, "old", VALUE, ttl_minutes=60)
        await _expire(store, "old")

        deleted = await store.cleanup_expired()

        assert deleted == 1
        cursor = await store._db.execute("SELECT COUNT(*) FROM record_cache")
        row = await cursor.fetchone()
        assert row is not None
        assert row[0] == 0

    async def test_preserves_live_records(self, store: SqliteRecordStore) -> None:
        await store.set(NS, "live", VALUE, ttl_minutes=60)

        deleted = await store.cleanup_expired()

        assert deleted == 0
        assert await store.get(NS, "live") == VALUE

    async def test_failure_does_not_raise(self, store: SqliteRecordStore) -> None:
        original_execute = store._db.execute

        async def failing_execute(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        store._db.execute = failing_execute  # type: ignore[assignment]
        assert await store.cleanup_expired() == 0
        store._db.execute = original_execute  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# cleanup_if_due
# ---------------------------------------------------------------------------


async def _count_records(store: SqliteRecordStore) -> int:
    cursor = await store._db.execute("SELECT COUNT(*) FROM record_cache")
    row = await cursor.fetchone()
    assert row is not None
    return row[0]


class TestCleanupIfDue:
    async def test_runs_cleanup_when_no_previous_record(self, store: SqliteRecordStore) -> None:
        """No last_cleanup_at in DB → cleanup runs and timestamp is written."""
        await store.set(NS, "old", VALUE, ttl_minutes=60)
        await _expire(store, "old")

        await store.cleanup_if_due(24)

        assert await _count_records(store) == 0
        cursor = await store._db.execute(
            "SELECT value FROM store_metadata WHERE key = 'last_cleanup_at'"
        )
        assert await cursor.fetchone() is not None

    async def test_skips_when_recently_run(self, store: SqliteRecordStore) -> None:
        """Recent last_cleanup_at → cleanup is skipped, expired records untouched."""
        await store._db.execute(
            "INSERT INTO store_metadata (key, value) VALUES ('last_cleanup_at', ?)",
            (datetime.now(UTC).isoformat(),),
        )
        await store._db.commit()
        await store.set(NS, "old", VALUE, ttl_minutes=60)
        await _expire(store, "old")

        await store.cleanup_if_due(24)

        assert await _count_records(store) == 1

    async def test_runs_when_interval_elapsed(self, store: SqliteRecordStore) -> None:
        """Stale last_cleanup_at → cleanup runs and updates the timestamp."""
        stale = (datetime.now(UTC) - timedelta(hours=25)).isoformat()
        await store._db.execute(
            "INSERT INTO store_metadata (key, value) VALUES ('last_cleanup_at', ?)",
            (stale,),
        )
        await store._db.commit()
        await store.set(NS, "old", VALUE, ttl_minutes=60)
        await _expire(store, "old")

        await store.cleanup_if_due(24)

        assert await _count_records(store) == 0
        cursor = await store._db.execute(
            "SELECT value FROM store_metadata WHERE key = 'last_cleanup_at'"
        )
        row = await cursor.fetchone()
        assert row is not None
        assert datetime.fromisoformat(row[0]) > datetime.fromisoformat(stale)

    async def test_metadata_read_error_falls_through_to_cleanup(
        self, store: SqliteRecordStore
    ) -> None:
        """aiosqlite.Error reading last_cleanup_at → cleanup still runs."""
        await store.set(NS, "old", VALUE, ttl_minutes=60)
        await _expire(store, "old")

        original_execute = store._db.execute
        call_count = 0

        async def fail_first_call(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise aiosqlite.OperationalError("disk error")
            return await original_execute(*args, **kwargs)

        store._db.execute = fail_first_call  # type: ignore[assignment]
        await store.cleanup_if_due(24)
        store._db.execute = original_execute  # type: ignore[assignment]

        assert await _count_records(store) == 0
