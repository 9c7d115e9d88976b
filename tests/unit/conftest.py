"""Unit-specific fixtures (no I/O beyond in-memory SQLite)."""

from __future__ import annotations

import aiosqlite
import pytest

from releasecache.store import SqliteRecordStore


@pytest.fixture()
async def store():
    """In-memory SQLite record store for unit tests."""
    async with aiosqlite.connect(":memory:") as db:
        s = SqliteRecordStore(db)
        await s.init_db()
        yield s
