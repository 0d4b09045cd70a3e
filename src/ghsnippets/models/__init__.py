from __future__ import annotations

from ghsnippets.models.cache import CacheEntry, CacheStats, ETagRecord
from ghsnippets.models.render import (
    GitHubReference,
    MacroRequest,
    MacroResponse,
    RenderFailure,
    RenderPayload,
    RenderResult,
    RenderSuccess,
)

__all__ = [
    # cache
    "CacheEntry",
    "CacheStats",
    "ETagRecord",
    # render
    "GitHubReference",
    "RenderPayload",
    "RenderSuccess",
    "RenderFailure",
    "RenderResult",
    # http
    "MacroRequest",
    "MacroResponse",
]
