"""Process-wide application state shared by the HTTP handlers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from ghsnippets.config import Settings
    from ghsnippets.pipeline import RenderPipeline
    from ghsnippets.protocols import CacheProtocol, FetcherProtocol


@dataclass
class AppState:
    """Everything a request handler needs, built once in the server lifespan."""

    settings: Settings
    cache: CacheProtocol
    fetcher: FetcherProtocol
    pipeline: RenderPipeline
    http_client: httpx.AsyncClient | None = None
    sweeper: asyncio.Task[None] | None = None
