"""Syntax highlighting and the themed code-block wrapper.

The pipeline only depends on the ``Highlighter`` protocol; ``PygmentsHighlighter``
is the default implementation. Display themes map onto Pygments styles, and
each rendered block carries its own scoped stylesheet so it can be dropped into
a Confluence page or a Viewport site without any extra CSS.
"""

from __future__ import annotations

import html
from functools import lru_cache

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name

DEFAULT_THEME = "github"

# display theme -> Pygments style
THEMES: dict[str, str] = {
    "github": "default",
    "github-light": "default",
    "github-dark": "github-dark",
    "monokai": "monokai",
    "dracula": "dracula",
    "atom-one-dark": "one-dark",
    "vs2015": "native",
    "xcode": "xcode",
    "tomorrow": "tango",
}

# language tag -> Pygments lexer alias, where they differ
_LEXER_ALIASES = {
    "plaintext": "text",
}

_LINE_HEIGHT_PX = 18
_PADDING_PX = 20
_MIN_HEIGHT_PX = 80
_MAX_HEIGHT_PX = 600

_BASE_CSS = """
.github-code-block { margin: 16px 0; border: 1px solid #d0d7de; border-radius: 6px;
  overflow: hidden; font-family: SFMono-Regular, Consolas, "Liberation Mono", Menlo, monospace;
  font-size: 14px; line-height: 1.5; }
.github-code-header, .github-code-footer { display: flex; justify-content: space-between;
  padding: 8px 16px; background: #f6f8fa; color: #57606a; font-size: 12px;
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Helvetica, Arial, sans-serif; }
.github-code-header { border-bottom: 1px solid #d0d7de; font-weight: 600; }
.github-code-footer { border-top: 1px solid #d0d7de; }
.github-code-footer a { color: #0969da; text-decoration: none; }
.github-code-block pre.highlight { margin: 0; padding: 16px; overflow-x: auto;
  white-space: pre; tab-size: 4; }
""".strip()


class PygmentsHighlighter:
    """Highlighter backed by Pygments. Raises for unknown languages."""

    def __init__(self) -> None:
        self._formatter = HtmlFormatter(nowrap=True)

    def highlight(self, code: str, language: str) -> str:
        lexer = get_lexer_by_name(
            _LEXER_ALIASES.get(language, language), stripnl=False, ensurenl=False
        )
        return pygments_highlight(code, lexer, self._formatter)


def escape_code(code: str) -> str:
    """Plaintext fallback used when highlighting fails."""
    return html.escape(code, quote=True)


def resolve_theme(theme: str | None, default: str = DEFAULT_THEME) -> str:
    """Return ``theme`` if it is a known display theme, otherwise the default."""
    if theme in THEMES:
        return theme
    return default if default in THEMES else DEFAULT_THEME


@lru_cache(maxsize=len(THEMES))
def theme_css(theme: str) -> str:
    """Stylesheet for ``theme``, scoped to blocks rendered with that theme."""
    style = THEMES[resolve_theme(theme)]
    scope = f'.github-code-block[data-theme="{theme}"] .highlight'
    return HtmlFormatter(style=style).get_style_defs(scope)


def calculate_height(code: str) -> int:
    """Suggested iframe height for the Confluence macro, in pixels."""
    lines = code.count("\n") + 1
    return min(max(lines * _LINE_HEIGHT_PX + _PADDING_PX, _MIN_HEIGHT_PX), _MAX_HEIGHT_PX)


def render_code_block(
    highlighted: str,
    *,
    language: str,
    theme: str,
    filename: str,
    source_url: str,
) -> str:
    """Wrap highlighted markup in the themed, self-styled code block."""
    theme = resolve_theme(theme)
    attr = html.escape
    return (
        f'<div class="github-code-block" data-theme="{attr(theme)}" '
        f'data-language="{attr(language)}">\n'
        f"<style>\n{_BASE_CSS}\n{theme_css(theme)}\n</style>\n"
        f'<div class="github-code-header">'
        f'<span class="github-code-filename">{attr(filename)}</span>'
        f'<span class="github-code-language">{attr(language)}</span></div>\n'
        f'<pre class="highlight"><code class="language-{attr(language)}">'
        f"{highlighted}</code></pre>\n"
        f'<div class="github-code-footer">'
        f'<a href="{attr(source_url)}" target="_blank" rel="noopener noreferrer">'
        f"View on GitHub</a><span>{attr(theme)}</span></div>\n"
        f"</div>"
    )
