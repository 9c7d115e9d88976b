"""Integration test fixtures.

Provides ReleaseFeed instances wired to an in-memory SQLite store and a real
httpx.AsyncClient; tests mock the network with respx.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from releasecache.config import Settings
from releasecache.datasource import ReleaseFeed
from releasecache.store import SqliteRecordStore

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path


@pytest.fixture()
async def sqlite_store():
    async with aiosqlite.connect(":memory:") as db:
        store = SqliteRecordStore(db)
        await store.init_db()
        yield store


@pytest.fixture()
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def make_feed(sqlite_store: SqliteRecordStore, http_client: httpx.AsyncClient, now: datetime):
    """Build ReleaseFeed instances sharing one store, one client and the fixed clock."""

    def _make(**sync: float) -> ReleaseFeed:
        settings = Settings(sync=sync)
        return ReleaseFeed(http_client, sqlite_store, settings, clock=lambda: now)

    return _make


@pytest.fixture()
def cli_db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a throwaway database in a directory that does not exist yet."""
    db_path = tmp_path / "a" / "b" / "cache.db"
    monkeypatch.setenv("RELEASECACHE__CACHE__DB_PATH", str(db_path))
    monkeypatch.setenv("RELEASECACHE__LOGGING__LEVEL", "ERROR")
    return db_path
