"""Raw-content fetcher for GitHub files.

A thin conditional-GET wrapper over a shared ``httpx.AsyncClient``. It does
not retry and does not cache; the render pipeline owns both concerns. No
``httpx`` exception crosses this module's boundary.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from ghsnippets.config import FetcherSettings
from ghsnippets.errors import (
    ErrorCode,
    GhSnippetsError,
    InvalidReferenceError,
    NetworkError,
    UpstreamFetchError,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class FetchResult:
    content: str  # Empty when not_modified
    etag: str | None
    not_modified: bool = False


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared HTTP client used for all upstream requests."""
    settings = settings or FetcherSettings()
    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "text/plain",
    }
    if settings.github_token:
        headers["Authorization"] = f"token {settings.github_token}"
    return httpx.AsyncClient(
        headers=headers,
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=True,
        max_redirects=settings.max_redirects,
    )


class Fetcher:
    """Fetches raw file content, honouring a previously seen ETag."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, url: str, prior_etag: str | None = None) -> FetchResult:
        headers = {"If-None-Match": prior_etag} if prior_etag else None

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.InvalidURL as exc:
            log.warning("fetch_invalid_url", url=url, error=str(exc))
            raise InvalidReferenceError(f"Invalid URL {url}: {exc}") from exc
        except httpx.TooManyRedirects as exc:
            log.warning("fetch_too_many_redirects", url=url)
            raise GhSnippetsError(
                ErrorCode.UPSTREAM_ERROR, f"Too many redirects fetching {url}"
            ) from exc
        except httpx.TimeoutException as exc:
            log.warning("fetch_timeout", url=url)
            raise NetworkError(f"Timed out fetching {url}") from exc
        except httpx.RequestError as exc:
            log.warning("fetch_network_error", url=url, error=str(exc))
            raise NetworkError(f"Network error fetching {url}: {exc}") from exc

        if response.status_code == 304:
            log.debug("fetch_not_modified", url=url, etag=prior_etag)
            return FetchResult(content="", etag=prior_etag, not_modified=True)

        if not response.is_success:
            log.info("fetch_upstream_error", url=url, status_code=response.status_code)
            raise UpstreamFetchError(response.status_code, url)

        content = response.text
        etag = response.headers.get("ETag")
        log.debug("fetch_complete", url=url, size=len(content), etag=etag)
        return FetchResult(content=content, etag=etag)
