"""SQLite record store with per-entry expiry.

All store operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as a cache miss by the sync
engine), write failures are logged and ignored (the freshly merged items are
still returned to the caller). Infrastructure errors never cross the
SqliteRecordStore class boundary; they are logged with ``exc_info=True`` so
they remain observable via stderr.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import structlog

log = structlog.get_logger()

_CREATE_RECORD_TABLE = """
CREATE TABLE IF NOT EXISTS record_cache (
    namespace  TEXT NOT NULL,
    cache_key  TEXT NOT NULL,
    value      TEXT NOT NULL,
    stored_at  TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    PRIMARY KEY (namespace, cache_key)
)
"""

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS store_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

_CREATE_RECORD_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_record_expires ON record_cache(expires_at)"
)


class SqliteRecordStore:
    """SQLite-backed store implementing the RecordStore protocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_RECORD_TABLE)
        await self._db.execute(_CREATE_METADATA_TABLE)
        await self._db.execute(_CREATE_RECORD_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def get(self, namespace: str, key: str) -> dict[str, Any] | None:
        """Read a record. Returns ``None`` on miss, expiry or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT value, expires_at FROM record_cache "
                "WHERE namespace = ? AND cache_key = ?",
                (namespace, key),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            if datetime.now(UTC) >= datetime.fromisoformat(row[1]):
                return None

            return json.loads(row[0])
        except aiosqlite.Error:
            log.warning("store_read_error", namespace=namespace, key=key, exc_info=True)
            return None
        except json.JSONDecodeError:
            log.warning("store_decode_error", namespace=namespace, key=key, exc_info=True)
            return None

    async def set(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        ttl_minutes: int,
    ) -> None:
        """Write a record that expires ``ttl_minutes`` from now. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(minutes=ttl_minutes)
            await self._db.execute(
                "INSERT OR REPLACE INTO record_cache "
                "(namespace, cache_key, value, stored_at, expires_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (namespace, key, json.dumps(value), now.isoformat(), expires_at.isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", namespace=namespace, key=key, exc_info=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_expired(self) -> int:
        """Delete expired records. Returns the number deleted (0 on failure)."""
        try:
            now = datetime.now(UTC).isoformat()
            cursor = await self._db.execute(
                "DELETE FROM record_cache WHERE expires_at <= ?", (now,)
            )
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("store_cleanup_complete", deleted=deleted)
            return deleted
        except aiosqlite.Error:
            log.warning("store_cleanup_error", exc_info=True)
            return 0

    async def cleanup_if_due(self, interval_hours: int) -> None:
        """Run cleanup_expired unless it already ran within ``interval_hours``.

        A failure to read the last run time is treated as "due".
        """
        now = datetime.now(UTC)
        try:
            cursor = await self._db.execute(
                "SELECT value FROM store_metadata WHERE key = 'last_cleanup_at'"
            )
            row = await cursor.fetchone()
            if row is not None:
                last_run = datetime.fromisoformat(row[0])
                if now - last_run < timedelta(hours=interval_hours):
                    log.debug("store_cleanup_skipped", last_cleanup_at=row[0])
                    return
        except aiosqlite.Error:
            log.warning("store_metadata_read_error", exc_info=True)

        await self.cleanup_expired()

        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO store_metadata (key, value) "
                "VALUES ('last_cleanup_at', ?)",
                (now.isoformat(),),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_metadata_write_error", exc_info=True)
