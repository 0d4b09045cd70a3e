from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ghsnippets.models.render import RenderPayload


class CacheEntry(BaseModel):
    """Fully processed response stored under a (url, lines, theme) key."""

    key: str  # URL-safe base64 of the JSON-encoded triple
    payload: RenderPayload
    stored_at: datetime
    expires_at: datetime
    ttl_seconds: int


class ETagRecord(BaseModel):
    """Last full download of a raw URL together with its validator."""

    raw_url: str
    etag: str
    content: str  # Always the unsliced file
    fetched_at: datetime


class CacheStats(BaseModel):
    hits: int
    misses: int
    clears: int
    keys: int
    etag_keys: int
