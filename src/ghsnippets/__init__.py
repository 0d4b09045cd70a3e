"""Render syntax-highlighted GitHub file snippets for Confluence and Scroll Viewport."""

from __future__ import annotations

from ghsnippets.errors import ErrorCode, GhSnippetsError
from ghsnippets.pipeline import RenderPipeline, RetryPolicy, render_with_retry

__all__ = [
    "ErrorCode",
    "GhSnippetsError",
    "RenderPipeline",
    "RetryPolicy",
    "render_with_retry",
]

__version__ = "0.1.0"
