"""Error taxonomy shared by every component.

Lower components raise ``GhSnippetsError`` subclasses; the render pipeline is
the only place that turns them into ``RenderFailure`` results. Adapters map
``ErrorCode`` values to transport status codes.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_REFERENCE = "INVALID_REFERENCE"
    NOT_FOUND = "NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    NETWORK_ERROR = "NETWORK_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"


class GhSnippetsError(Exception):
    """Base error carrying a machine-readable code and a retry hint."""

    def __init__(self, code: ErrorCode, message: str, *, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable


class InvalidReferenceError(GhSnippetsError):
    """The input could not be classified as a GitHub file reference."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_REFERENCE, message)


class UpstreamFetchError(GhSnippetsError):
    """GitHub answered with a status other than 2xx or 304."""

    def __init__(self, status_code: int, url: str) -> None:
        if status_code == 404:
            code = ErrorCode.NOT_FOUND
            message = "File not found on GitHub"
        elif status_code == 403:
            code = ErrorCode.ACCESS_DENIED
            message = "GitHub denied access: rate-limited or private repository"
        else:
            code = ErrorCode.UPSTREAM_ERROR
            message = f"GitHub returned HTTP {status_code}"
        super().__init__(code, message)
        self.status_code = status_code
        self.url = url


class NetworkError(GhSnippetsError):
    """Connection, DNS or timeout failure talking to GitHub. Safe to retry."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NETWORK_ERROR, message, recoverable=True)
