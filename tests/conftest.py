"""Shared fixtures: a fixed clock and an in-memory record store double."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
import structlog

NOW = datetime(2022, 6, 15, 18, 30, 30, tzinfo=UTC)


class RecordingStore:
    """Dict-backed RecordStore that remembers every write.

    Expiry is not modelled; tests assert on the TTL passed to ``set``.
    """

    def __init__(self) -> None:
        self.data: dict[tuple[str, str], dict[str, Any]] = {}
        self.set_calls: list[tuple[str, str, dict[str, Any], int]] = []

    async def get(self, namespace: str, key: str) -> dict[str, Any] | None:
        return self.data.get((namespace, key))

    async def set(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        ttl_minutes: int,
    ) -> None:
        self.set_calls.append((namespace, key, value, ttl_minutes))
        self.data[(namespace, key)] = value


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo configure_logging calls made by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def record_store() -> RecordingStore:
    return RecordingStore()
