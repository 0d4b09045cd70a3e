"""SQLite response cache with a parallel ETag namespace.

Two tables live in one ``aiosqlite`` connection:

* ``response_cache`` holds fully rendered payloads keyed by the
  (normalized url, lines, theme) triple, each with its own expiry.
* ``etag_cache`` holds the last full download of a raw URL and its ETag,
  keyed by URL only, so a different line range or theme can revalidate with
  ``If-None-Match`` instead of downloading again.

The default database is ``:memory:`` so the cache lives exactly as long as the
process. TTL and clock are injected for deterministic tests.

All operations catch ``aiosqlite.Error`` internally and degrade gracefully:
read failures are treated as misses, write failures are logged and ignored.
Infrastructure errors never cross the Cache class boundary.
"""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import aiosqlite
import structlog
from pydantic import ValidationError

from ghsnippets.models.cache import CacheEntry, CacheStats, ETagRecord
from ghsnippets.models.render import RenderPayload

log = structlog.get_logger()

DEFAULT_TTL_SECONDS = 3600

_CREATE_RESPONSE_TABLE = """
CREATE TABLE IF NOT EXISTS response_cache (
    cache_key    TEXT PRIMARY KEY,
    url          TEXT NOT NULL,
    lines        TEXT NOT NULL DEFAULT '',
    theme        TEXT NOT NULL,
    payload      TEXT NOT NULL,
    stored_at    REAL NOT NULL,
    expires_at   REAL NOT NULL,
    ttl_seconds  INTEGER NOT NULL
)
"""

_CREATE_ETAG_TABLE = """
CREATE TABLE IF NOT EXISTS etag_cache (
    raw_url     TEXT PRIMARY KEY,
    etag        TEXT NOT NULL,
    content     TEXT NOT NULL,
    fetched_at  REAL NOT NULL
)
"""

_CREATE_RESPONSE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_response_expires ON response_cache(expires_at)"
)

_SELECT_ENTRY = "SELECT cache_key, payload, stored_at, expires_at, ttl_seconds FROM response_cache"


def make_cache_key(url: str, lines: str | None, theme: str) -> str:
    """Derive the response-cache key for a (url, lines, theme) triple.

    JSON keeps the three fields unambiguous whatever characters they contain;
    base64 makes the key safe to log and pass around.
    """
    raw = json.dumps([url, lines or "", theme], separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cache_key(key: str) -> tuple[str, str, str]:
    """Inverse of :func:`make_cache_key`."""
    url, lines, theme = json.loads(base64.urlsafe_b64decode(key.encode("ascii")))
    return url, lines, theme


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _from_ts(value: float) -> datetime:
    return datetime.fromtimestamp(value, UTC)


class Cache:
    """SQLite-backed render cache implementing CacheProtocol."""

    def __init__(
        self,
        db: aiosqlite.Connection,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._clears = 0

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def init_db(self) -> None:
        """Create tables. Called once at startup."""
        await self._db.execute(_CREATE_RESPONSE_TABLE)
        await self._db.execute(_CREATE_ETAG_TABLE)
        await self._db.execute(_CREATE_RESPONSE_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Response cache
    # ------------------------------------------------------------------

    def _row_to_entry(self, row: aiosqlite.Row | tuple) -> CacheEntry:
        return CacheEntry(
            key=row[0],
            payload=RenderPayload.model_validate_json(row[1]),
            stored_at=_from_ts(row[2]),
            expires_at=_from_ts(row[3]),
            ttl_seconds=row[4],
        )

    async def get(self, key: str) -> CacheEntry | None:
        """Read an entry. Expired, missing and unreadable entries count as misses."""
        try:
            cursor = await self._db.execute(f"{_SELECT_ENTRY} WHERE cache_key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", key=key, exc_info=True)
            self._misses += 1
            return None

        if row is None:
            self._misses += 1
            return None

        if self._clock().timestamp() >= row[3]:
            log.debug("cache_entry_expired", key=key)
            await self._delete(key)
            self._misses += 1
            return None

        try:
            entry = self._row_to_entry(row)
        except ValidationError:
            log.warning("cache_entry_corrupt", key=key, exc_info=True)
            await self._delete(key)
            self._misses += 1
            return None

        self._hits += 1
        return entry

    async def set(self, key: str, payload: RenderPayload, ttl_seconds: int | None = None) -> None:
        """Store a payload, replacing any existing entry. Non-fatal on failure."""
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl)
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO response_cache "
                "(cache_key, url, lines, theme, payload, stored_at, expires_at, ttl_seconds) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    key,
                    payload.normalized_url,
                    payload.lines or "",
                    payload.theme,
                    payload.model_dump_json(),
                    now.timestamp(),
                    expires_at.timestamp(),
                    ttl,
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=key, exc_info=True)

    async def _delete(self, key: str) -> None:
        try:
            await self._db.execute("DELETE FROM response_cache WHERE cache_key = ?", (key,))
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_delete_error", key=key, exc_info=True)

    # ------------------------------------------------------------------
    # ETag namespace
    # ------------------------------------------------------------------

    async def get_etag(self, raw_url: str) -> ETagRecord | None:
        """Read the stored ETag and full content for a raw URL."""
        try:
            cursor = await self._db.execute(
                "SELECT raw_url, etag, content, fetched_at FROM etag_cache WHERE raw_url = ?",
                (raw_url,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", key=f"etag:{raw_url}", exc_info=True)
            return None

        if row is None:
            return None
        return ETagRecord(raw_url=row[0], etag=row[1], content=row[2], fetched_at=_from_ts(row[3]))

    async def set_etag(self, record: ETagRecord) -> None:
        """Store (or overwrite) the ETag record for a raw URL. Non-fatal on failure."""
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO etag_cache (raw_url, etag, content, fetched_at) "
                "VALUES (?, ?, ?, ?)",
                (record.raw_url, record.etag, record.content, record.fetched_at.timestamp()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=f"etag:{record.raw_url}", exc_info=True)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def clear(self) -> int:
        """Drop every response entry and ETag record. Returns entries removed."""
        self._clears += 1
        try:
            cursor = await self._db.execute("DELETE FROM response_cache")
            removed = cursor.rowcount
            await self._db.execute("DELETE FROM etag_cache")
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_clear_error", exc_info=True)
            return 0
        log.info("cache_cleared", removed=removed)
        return removed

    async def clear_matching(self, predicate: Callable[[CacheEntry], bool]) -> int:
        """Drop response entries for which ``predicate`` returns True."""
        self._clears += 1
        try:
            cursor = await self._db.execute(_SELECT_ENTRY)
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("cache_clear_error", exc_info=True)
            return 0

        doomed: list[str] = []
        for row in rows:
            try:
                entry = self._row_to_entry(row)
            except ValidationError:
                doomed.append(row[0])
                continue
            if predicate(entry):
                doomed.append(entry.key)

        if not doomed:
            return 0
        try:
            await self._db.executemany(
                "DELETE FROM response_cache WHERE cache_key = ?", [(key,) for key in doomed]
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_clear_error", exc_info=True)
            return 0
        log.info("cache_cleared_matching", removed=len(doomed))
        return len(doomed)

    async def clear_containing(self, text: str) -> int:
        """Drop entries whose normalized URL, line spec or theme contains ``text``."""

        def _matches(entry: CacheEntry) -> bool:
            payload = entry.payload
            return (
                text in payload.normalized_url
                or text in (payload.lines or "")
                or text in payload.theme
            )

        return await self.clear_matching(_matches)

    async def stats(self) -> CacheStats:
        keys = etag_keys = 0
        try:
            cursor = await self._db.execute("SELECT COUNT(*) FROM response_cache")
            keys = (await cursor.fetchone())[0]
            cursor = await self._db.execute("SELECT COUNT(*) FROM etag_cache")
            etag_keys = (await cursor.fetchone())[0]
        except aiosqlite.Error:
            log.warning("cache_stats_error", exc_info=True)
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            clears=self._clears,
            keys=keys,
            etag_keys=etag_keys,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_expired(self) -> int:
        """Delete expired response entries. Non-fatal on failure."""
        try:
            cursor = await self._db.execute(
                "DELETE FROM response_cache WHERE expires_at <= ?",
                (self._clock().timestamp(),),
            )
            deleted = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
            return 0
        if deleted:
            log.info("cache_cleanup_complete", deleted=deleted)
        return deleted

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Purge expired entries every ``interval_seconds`` until cancelled."""
        log.info("cache_sweeper_started", interval_seconds=interval_seconds)
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.cleanup_expired()
            except ValueError:
                # aiosqlite raises ValueError once the connection is closed.
                log.warning("cache_sweeper_stopped", exc_info=True)
                return
            except Exception:
                log.error("cache_sweep_failed", exc_info=True)
