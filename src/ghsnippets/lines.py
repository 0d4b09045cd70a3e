"""Line-range extraction.

A spec is a comma-separated list of 1-based line numbers and inclusive
ranges, e.g. ``"3"``, ``"10-20"`` or ``"1-3,7,10-12"``. Malformed tokens are
skipped with a warning; extraction never raises.
"""

from __future__ import annotations

from typing import NamedTuple

import structlog

log = structlog.get_logger()


class LineRange(NamedTuple):
    start: int
    end: int  # Inclusive; equal to start for a single line


def _parse_positive(text: str) -> int | None:
    text = text.strip()
    # str.isdigit also accepts superscripts and other digits int() rejects.
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value >= 1 else None


def parse_line_spec(spec: str | None, line_count: int) -> list[LineRange]:
    """Parse ``spec`` into ranges clamped to ``[1, line_count]``.

    Tokens that select nothing (entirely past the end of the file) are dropped
    silently; malformed tokens are logged and dropped.
    """
    ranges: list[LineRange] = []
    if not spec:
        return ranges

    for raw_token in spec.split(","):
        token = raw_token.strip()
        if not token:
            continue

        if "-" in token:
            first, _, last = token.partition("-")
            start = _parse_positive(first)
            end = _parse_positive(last)
            if start is None or end is None:
                log.warning("line_token_skipped", token=token, reason="not a positive range")
                continue
            if end < start:
                log.warning("line_token_skipped", token=token, reason="end before start")
                continue
        else:
            start = _parse_positive(token)
            if start is None:
                log.warning("line_token_skipped", token=token, reason="not a positive line")
                continue
            end = start

        if start > line_count:
            log.debug("line_token_out_of_range", token=token, line_count=line_count)
            continue
        ranges.append(LineRange(start, min(end, line_count)))

    return ranges


def extract(content: str, spec: str | None) -> str:
    """Return the lines of ``content`` selected by ``spec``.

    ``None`` or a blank spec returns ``content`` unchanged. A request that
    selects nothing returns an empty string.
    """
    if spec is None or not spec.strip():
        return content

    lines = content.split("\n")
    selected: list[str] = []
    for line_range in parse_line_spec(spec, len(lines)):
        selected.extend(lines[line_range.start - 1 : line_range.end])
    return "\n".join(selected)
