"""Integration test fixtures.

Provides a fully wired AppState (in-memory SQLite, real httpx client mocked
with respx, Pygments highlighter) and an ASGI client driving the FastAPI app
on the test's own event loop.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from ghsnippets.cache import Cache
from ghsnippets.config import Settings
from ghsnippets.fetcher import Fetcher, build_http_client
from ghsnippets.highlight import PygmentsHighlighter
from ghsnippets.pipeline import RenderPipeline
from ghsnippets.server import create_app
from ghsnippets.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tests.conftest import FakeClock


@pytest.fixture()
async def app_state(clock: FakeClock) -> AsyncIterator[AppState]:
    """Full AppState with retries limited to a single attempt."""
    settings = Settings(retry={"max_attempts": 1})
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db, ttl_seconds=settings.cache.ttl_seconds, clock=clock)
        await cache.init_db()

        async with build_http_client(settings.fetcher) as client:
            fetcher = Fetcher(client)
            pipeline = RenderPipeline(
                cache,
                fetcher,
                PygmentsHighlighter(),
                default_theme=settings.render.default_theme,
                clock=clock,
            )
            yield AppState(
                settings=settings,
                cache=cache,
                fetcher=fetcher,
                pipeline=pipeline,
                http_client=client,
            )


@pytest.fixture()
async def api(app_state: AppState) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(state=app_state)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture()
def subprocess_env() -> dict[str, str]:
    """Environment for server subprocesses, free of inherited GHSNIPPETS__ overrides."""
    return {k: v for k, v in os.environ.items() if not k.startswith("GHSNIPPETS__")}
