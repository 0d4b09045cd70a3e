"""Unit-specific fixtures (no I/O beyond in-memory SQLite)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from ghsnippets.cache import Cache

if TYPE_CHECKING:
    from tests.conftest import FakeClock


@pytest.fixture()
async def cache(clock: FakeClock):
    """In-memory SQLite cache driven by the fake clock, TTL one hour."""
    async with aiosqlite.connect(":memory:") as db:
        c = Cache(db, ttl_seconds=3600, clock=clock)
        await c.init_db()
        yield c
