"""GitHub reference normalization.

Every accepted reference shape collapses to one canonical
``https://raw.githubusercontent.com/<owner>/<repo>/<ref>/<path>`` URL:

  https://raw.githubusercontent.com/acme/widget/main/src/app.js   (unchanged)
  https://github.com/acme/widget/blob/main/src/app.js
  github.com/acme/widget/blob/main/src/app.js
  https://github.com/acme/widget/blob/main/src/app.js:10-12::monokai
  https://github.com/acme/widget/blob/main/src/app.js#L10-L12
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from ghsnippets.errors import InvalidReferenceError
from ghsnippets.models.render import GitHubReference

RAW_HOST = "raw.githubusercontent.com"
_BROWSER_HOSTS = frozenset({"github.com", "www.github.com"})
_VIEW_SEGMENTS = frozenset({"blob", "raw"})

_LINES_SUFFIX = re.compile(r"[0-9][0-9,\- ]*")
_LINE_FRAGMENT = re.compile(r"L(\d+)(?:-L?(\d+))?")


def split_reference(text: str) -> tuple[str, str | None, str | None]:
    """Split embedded ``:lines``, ``::theme`` and ``#L..`` suffixes off a reference.

    Returns ``(url, lines, theme)`` where ``lines`` and ``theme`` are ``None``
    when the input carried no such suffix.
    """
    text = (text or "").strip()
    if not text:
        raise InvalidReferenceError("GitHub URL is required")

    scheme_end = text.find("://")
    start = scheme_end + 3 if scheme_end >= 0 else 0

    theme: str | None = None
    idx = text.find("::", start)
    if idx >= 0:
        theme = text[idx + 2 :].strip() or None
        text = text[:idx]

    lines: str | None = None
    if "#" in text:
        text, fragment = text.split("#", 1)
        match = _LINE_FRAGMENT.fullmatch(fragment)
        if match:
            first, last = match.groups()
            lines = f"{first}-{last}" if last else first

    colon = text.rfind(":")
    if colon >= start:
        suffix = text[colon + 1 :]
        if _LINES_SUFFIX.fullmatch(suffix):
            lines = suffix.replace(" ", "")
            text = text[:colon]
        elif not suffix:
            text = text[:colon]

    return text, lines, theme


def normalize(text: str) -> str:
    """Return the canonical raw-content URL for any accepted reference shape.

    Raises:
        InvalidReferenceError: the input is not a GitHub file reference.
    """
    url, _, _ = split_reference(text)

    if "://" not in url:
        host = url.split("/", 1)[0].lower()
        if host != RAW_HOST and host not in _BROWSER_HOSTS:
            raise InvalidReferenceError(f"Invalid GitHub URL format: {text}")
        url = f"https://{url}"

    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        raise InvalidReferenceError(f"Unsupported URL scheme: {text}")
    if "@" in parts.netloc or ":" in parts.netloc:
        raise InvalidReferenceError(f"GitHub URL must not carry a port or credentials: {text}")

    host = (parts.hostname or "").lower()
    if host == RAW_HOST:
        if len([seg for seg in parts.path.split("/") if seg]) < 4:
            raise InvalidReferenceError(f"Raw URL does not point at a file: {text}")
        return url

    if host in _BROWSER_HOSTS:
        segments = parts.path.strip("/").split("/")
        if (
            len(segments) >= 5
            and segments[2] in _VIEW_SEGMENTS
            and all(segments[:4])
            and segments[-1]
        ):
            owner, repo = segments[0], segments[1]
            rest = "/".join(segments[3:])
            return f"https://{RAW_HOST}/{owner}/{repo}/{rest}"
        raise InvalidReferenceError(
            f"Invalid GitHub URL format: {text}. Use the full URL to a file."
        )

    raise InvalidReferenceError(f"Not a GitHub URL: {text}")


def browser_url(raw_url: str) -> str:
    """Map a canonical raw URL back to its github.com ``/blob/`` page."""
    path = urlsplit(raw_url).path.strip("/")
    owner, repo, rest = path.split("/", 2)
    return f"https://github.com/{owner}/{repo}/blob/{rest}"


def parse_reference(
    url: str,
    lines: str | None = None,
    theme: str | None = None,
    *,
    default_theme: str,
) -> GitHubReference:
    """Build a GitHubReference, preferring explicit arguments over embedded suffixes."""
    _, embedded_lines, embedded_theme = split_reference(url)
    explicit_lines = lines.strip() if lines else ""
    explicit_theme = theme.strip() if theme else ""
    return GitHubReference(
        raw_input_url=url,
        normalized_url=normalize(url),
        lines=explicit_lines or embedded_lines or None,
        theme=explicit_theme or embedded_theme or default_theme,
    )
