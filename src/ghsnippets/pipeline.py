"""Render pipeline: reference in, display payload out.

This is the single place where component errors become ``RenderFailure``
results. Normalization and fetching can fail the request; extraction,
language detection and highlighting only ever degrade the output.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

import structlog

from ghsnippets import languages, lines
from ghsnippets.cache import make_cache_key
from ghsnippets.errors import ErrorCode, GhSnippetsError
from ghsnippets.highlight import (
    DEFAULT_THEME,
    calculate_height,
    escape_code,
    render_code_block,
    resolve_theme,
)
from ghsnippets.models.cache import ETagRecord
from ghsnippets.models.render import RenderFailure, RenderPayload, RenderResult, RenderSuccess
from ghsnippets.normalizer import browser_url, parse_reference

if TYPE_CHECKING:
    from ghsnippets.config import RetrySettings
    from ghsnippets.protocols import CacheProtocol, FetcherProtocol, Highlighter

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RenderPipeline:
    def __init__(
        self,
        cache: CacheProtocol,
        fetcher: FetcherProtocol,
        highlighter: Highlighter,
        *,
        default_theme: str = DEFAULT_THEME,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._highlighter = highlighter
        self._default_theme = resolve_theme(default_theme)
        self._clock = clock

    async def render(
        self, url: str, lines_spec: str | None = None, theme: str | None = None
    ) -> RenderResult:
        """Resolve a GitHub reference into highlighted code and metadata."""
        try:
            ref = parse_reference(url, lines_spec, theme, default_theme=self._default_theme)
        except GhSnippetsError as exc:
            log.info("render_invalid_reference", url=url, error=exc.message)
            return RenderFailure(error_kind=exc.code, message=exc.message, url=url or "")

        display_theme = resolve_theme(ref.theme, self._default_theme)
        key = make_cache_key(ref.normalized_url, ref.lines, display_theme)

        entry = await self._cache.get(key)
        if entry is not None:
            log.debug("render_cache_hit", url=ref.normalized_url, lines=ref.lines)
            return RenderSuccess(**entry.payload.model_dump(exclude={"url"}), url=url, cached=True)

        try:
            content = await self._load_content(ref.normalized_url)
        except GhSnippetsError as exc:
            log.info(
                "render_fetch_failed",
                url=ref.normalized_url,
                error_kind=exc.code,
                error=exc.message,
            )
            return RenderFailure(error_kind=exc.code, message=exc.message, url=url)

        code = self._extract(content, ref.lines, ref.normalized_url)
        language = languages.detect(ref.normalized_url)
        payload = RenderPayload(
            url=url,
            normalized_url=ref.normalized_url,
            lines=ref.lines,
            theme=display_theme,
            filename=_filename(ref.normalized_url),
            language=language,
            code=code,
            html=self._render_html(code, language, display_theme, ref.normalized_url),
            line_count=code.count("\n") + 1 if code else 0,
            height=calculate_height(code),
        )

        await self._cache.set(key, payload, self._cache.ttl_seconds)
        log.info(
            "render_complete",
            url=ref.normalized_url,
            lines=ref.lines,
            theme=display_theme,
            language=language,
        )
        return RenderSuccess(**payload.model_dump(), cached=False)

    resolve_reference = render

    async def _load_content(self, raw_url: str) -> str:
        """Full file content, revalidated through the ETag namespace."""
        record = await self._cache.get_etag(raw_url)
        result = await self._fetcher.fetch(raw_url, record.etag if record else None)

        if result.not_modified:
            if record is not None:
                log.debug("render_etag_reused", url=raw_url, etag=record.etag)
                return record.content
            log.warning("render_etag_record_missing", url=raw_url)
            result = await self._fetcher.fetch(raw_url, None)

        if result.etag:
            await self._cache.set_etag(
                ETagRecord(
                    raw_url=raw_url,
                    etag=result.etag,
                    content=result.content,
                    fetched_at=self._clock(),
                )
            )
        return result.content

    def _extract(self, content: str, lines_spec: str | None, raw_url: str) -> str:
        try:
            return lines.extract(content, lines_spec)
        except Exception:
            log.warning("line_extraction_failed", lines=lines_spec, url=raw_url, exc_info=True)
            return ""

    def _render_html(self, code: str, language: str, theme: str, raw_url: str) -> str:
        try:
            highlighted = self._highlighter.highlight(code, language)
        except Exception:
            log.warning("highlight_failed", language=language, url=raw_url, exc_info=True)
            highlighted = escape_code(code)
        return render_code_block(
            highlighted,
            language=language,
            theme=theme,
            filename=_filename(raw_url),
            source_url=browser_url(raw_url),
        )


def _filename(raw_url: str) -> str:
    return unquote(urlsplit(raw_url).path.rsplit("/", 1)[-1]) or "code"


# ----------------------------------------------------------------------
# Caller-side retry
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_seconds: float = 0.5
    backoff: float = 2.0

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            delay_seconds=settings.delay_seconds,
            backoff=settings.backoff,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return self.delay_seconds * self.backoff ** (attempt - 1)


async def render_with_retry(
    pipeline: RenderPipeline,
    url: str,
    lines_spec: str | None = None,
    theme: str | None = None,
    *,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RenderResult:
    """Render, retrying network failures only, up to ``policy.max_attempts`` times."""
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        result = await pipeline.render(url, lines_spec, theme)
        if (
            not isinstance(result, RenderFailure)
            or result.error_kind != ErrorCode.NETWORK_ERROR
            or attempt >= policy.max_attempts
        ):
            return result
        delay = policy.delay_for(attempt)
        log.info("render_retry", url=url, attempt=attempt, delay_seconds=delay)
        await sleep(delay)
        attempt += 1
