"""HTTP adapter and entrypoint.

Every route is a thin wrapper over ``RenderPipeline.render``: it parses
transport parameters, calls the pipeline (through the caller-side retry
policy) and maps ``ErrorCode`` values onto HTTP status codes. No
normalization, extraction or caching logic lives here.

Run with ``ghsnippets`` or ``python -m ghsnippets.server``.
"""

from __future__ import annotations

import asyncio
import contextlib
import html
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from ghsnippets.cache import Cache
from ghsnippets.config import LoggingSettings, Settings
from ghsnippets.errors import ErrorCode
from ghsnippets.fetcher import Fetcher, build_http_client
from ghsnippets.highlight import PygmentsHighlighter
from ghsnippets.models.render import MacroRequest, MacroResponse, RenderFailure, RenderSuccess
from ghsnippets.pipeline import RenderPipeline, RetryPolicy, render_with_retry
from ghsnippets.state import AppState

log = structlog.get_logger()

STATUS_BY_ERROR: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REFERENCE: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.NETWORK_ERROR: 502,
    ErrorCode.UPSTREAM_ERROR: 502,
}


def configure_logging(settings: LoggingSettings) -> None:
    """Configure structlog once at startup. Logs go to stderr."""
    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.format == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


async def _open_db(db_path: str) -> aiosqlite.Connection:
    if db_path != ":memory:":
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        db_path = str(path)
    return await aiosqlite.connect(db_path)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "ghsnippets", None) is not None:
        # State injected by the caller (tests); nothing to build or tear down.
        yield
        return

    settings: Settings = app.state.settings
    db = await _open_db(settings.cache.db_path)
    cache = Cache(db, ttl_seconds=settings.cache.ttl_seconds)
    await cache.init_db()

    client = build_http_client(settings.fetcher)
    fetcher = Fetcher(client)
    pipeline = RenderPipeline(
        cache, fetcher, PygmentsHighlighter(), default_theme=settings.render.default_theme
    )
    sweeper = asyncio.create_task(cache.run_sweeper(settings.cache.effective_sweep_interval))
    app.state.ghsnippets = AppState(
        settings=settings,
        cache=cache,
        fetcher=fetcher,
        pipeline=pipeline,
        http_client=client,
        sweeper=sweeper,
    )
    log.info(
        "server_started",
        db_path=settings.cache.db_path,
        ttl_seconds=settings.cache.ttl_seconds,
        default_theme=settings.render.default_theme,
    )
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await client.aclose()
        await db.close()
        app.state.ghsnippets = None
        log.info("server_stopped")


def _state(request: Request) -> AppState:
    return request.app.state.ghsnippets


async def _resolve(
    request: Request, url: str, lines: str | None, theme: str | None
) -> RenderSuccess | RenderFailure:
    state = _state(request)
    return await render_with_retry(
        state.pipeline,
        url,
        lines,
        theme,
        policy=RetryPolicy.from_settings(state.settings.retry),
    )


def _error_html(failure: RenderFailure) -> str:
    return (
        '<div class="github-code-error">'
        f"Error loading GitHub code: {html.escape(failure.message)} "
        f'(<a href="{html.escape(failure.url)}">{html.escape(failure.url)}</a>)'
        "</div>"
    )


def create_app(settings: Settings | None = None, *, state: AppState | None = None) -> FastAPI:
    """Build the FastAPI app. Pass ``state`` to skip the lifespan wiring."""
    settings = settings or (state.settings if state else Settings())
    app = FastAPI(title="ghsnippets", lifespan=_lifespan)
    app.state.settings = settings
    app.state.ghsnippets = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/render")
    async def render_json(
        request: Request, url: str = "", lines: str | None = None, theme: str | None = None
    ) -> JSONResponse:
        result = await _resolve(request, url, lines, theme)
        status = 200 if isinstance(result, RenderSuccess) else STATUS_BY_ERROR[result.error_kind]
        return JSONResponse(result.model_dump(mode="json"), status_code=status)

    @app.get("/html")
    async def render_html(
        request: Request, url: str = "", lines: str | None = None, theme: str | None = None
    ) -> HTMLResponse:
        result = await _resolve(request, url, lines, theme)
        if isinstance(result, RenderFailure):
            return HTMLResponse(_error_html(result), status_code=STATUS_BY_ERROR[result.error_kind])
        return HTMLResponse(result.html)

    @app.get("/raw")
    async def render_raw(
        request: Request, url: str = "", lines: str | None = None
    ) -> PlainTextResponse:
        result = await _resolve(request, url, lines, None)
        if isinstance(result, RenderFailure):
            return PlainTextResponse(
                f"Error: {result.message} ({result.url})",
                status_code=STATUS_BY_ERROR[result.error_kind],
            )
        return PlainTextResponse(result.code)

    @app.post("/macro")
    async def render_macro(request: Request, body: MacroRequest) -> Response:
        result = await _resolve(request, body.url, body.line_range, body.theme)
        if isinstance(result, RenderFailure):
            return JSONResponse(
                {
                    "error": "Failed to process GitHub code",
                    "error_kind": result.error_kind,
                    "details": result.message,
                    "url": result.url,
                },
                status_code=STATUS_BY_ERROR[result.error_kind],
            )
        macro = MacroResponse(html=result.html, height=result.height)
        return JSONResponse(macro.model_dump())

    @app.get("/cache/stats")
    async def cache_stats(request: Request) -> JSONResponse:
        stats = await _state(request).cache.stats()
        return JSONResponse(stats.model_dump())

    @app.delete("/cache")
    async def cache_clear(request: Request, match: str | None = None) -> JSONResponse:
        cache = _state(request).cache
        if match:
            removed = await cache.clear_containing(match)
        else:
            removed = await cache.clear()
        return JSONResponse({"removed": removed})

    return app


def main() -> None:
    settings = Settings()
    configure_logging(settings.logging)
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
