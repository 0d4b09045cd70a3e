"""Protocol interfaces for swappable components.

The render pipeline and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight fakes (fake clock, recording highlighter)
- A different highlighting library to be plugged in without touching the pipeline
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ghsnippets.fetcher import FetchResult
    from ghsnippets.models.cache import CacheEntry, CacheStats, ETagRecord
    from ghsnippets.models.render import RenderPayload


class CacheProtocol(Protocol):
    """Interface for the response cache and its ETag namespace."""

    @property
    def ttl_seconds(self) -> int: ...

    async def get(self, key: str) -> CacheEntry | None: ...

    async def set(self, key: str, payload: RenderPayload, ttl_seconds: int | None = None) -> None: ...

    async def clear(self) -> int: ...

    async def clear_matching(self, predicate: Callable[[CacheEntry], bool]) -> int: ...

    async def clear_containing(self, text: str) -> int: ...

    async def get_etag(self, raw_url: str) -> ETagRecord | None: ...

    async def set_etag(self, record: ETagRecord) -> None: ...

    async def stats(self) -> CacheStats: ...


class FetcherProtocol(Protocol):
    """Interface for the raw-content fetcher."""

    async def fetch(self, url: str, prior_etag: str | None = None) -> FetchResult: ...


class Highlighter(Protocol):
    """Turns code into highlighted HTML markup. May raise; callers degrade."""

    def highlight(self, code: str, language: str) -> str: ...
