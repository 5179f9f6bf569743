"""Markdown renderer — patitas for the document, Pygments for code blocks.

GitHub-flavoured extensions (tables, strikethrough, task lists, bare-URL
autolinks) are enabled. Fenced blocks go through patitas' highlighter hook:

- ``mermaid`` blocks become ``<div class="mermaid">`` holding the escaped
  diagram source; the browser script turns them into SVG.
- Blocks whose language Pygments knows are highlighted into
  ``<pre class="highlight"><code class="language-x">``.
- Anything else renders as a plain ``<pre><code class="language-x">``.
"""

from __future__ import annotations

import html
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from mdpreview._errors import ConfigError, ContentError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mdpreview._types import HTMLFragment

MERMAID_LANGUAGE = "mermaid"

# GitHub-flavoured markdown as far as patitas implements it
GFM_PLUGINS: tuple[str, ...] = ("table", "strikethrough", "task_lists", "autolinks")


def highlight_css(style: str = "default") -> str:
    """Stylesheet for highlighted blocks in the given Pygments style.

    Raises:
        ConfigError: If Pygments has no style with that name.

    """
    try:
        formatter = HtmlFormatter(style=style)
    except ClassNotFound as exc:
        msg = f"Unknown highlight style {style!r}"
        raise ConfigError(msg) from exc
    return formatter.get_style_defs(".highlight")


def _plain_block(code: str, language: str) -> str:
    return f'<pre><code class="language-{html.escape(language)}">{html.escape(code)}</code></pre>'


class CodeBlockHighlighter:
    """patitas ``Highlighter`` for fenced code blocks.

    Receives the raw block source and its info-string language. Never
    raises: unknown languages and Pygments failures fall back to a plain
    escaped block.
    """

    __slots__ = ("_formatter",)

    def __init__(self) -> None:
        self._formatter = HtmlFormatter(nowrap=True)

    def supports_language(self, language: str) -> bool:
        if language.lower() == MERMAID_LANGUAGE:
            return True
        try:
            get_lexer_by_name(language)
        except ClassNotFound:
            return False
        return True

    def highlight(
        self,
        code: str,
        language: str,
        *,
        hl_lines: list[int] | None = None,
        show_linenos: bool = False,
    ) -> str:
        if language.lower() == MERMAID_LANGUAGE:
            return f'<div class="mermaid">{html.escape(code)}</div>'

        try:
            lexer = get_lexer_by_name(language)
        except ClassNotFound:
            return _plain_block(code, language)

        try:
            body = pygments_highlight(code, lexer, self._formatter)
        except Exception as exc:
            print(f"  Highlight error ({language}): {exc}", file=sys.stderr)
            return _plain_block(code, language)
        return f'<pre class="highlight"><code class="language-{html.escape(language)}">{body}</code></pre>'


class MarkdownRenderer:
    """Converts markdown text to an HTML fragment.

    The code block highlighter is installed with
    ``patitas.highlighting.set_highlighter``, which is process-wide.

    Args:
        plugins: patitas plugins to enable.

    """

    def __init__(self, plugins: Sequence[str] = GFM_PLUGINS) -> None:
        from patitas import Markdown
        from patitas.highlighting import set_highlighter

        self.highlighter = CodeBlockHighlighter()
        set_highlighter(self.highlighter)
        self._md = Markdown(plugins=list(plugins), highlight=True)

    def render(self, text: str) -> HTMLFragment:
        """Render markdown source to HTML."""
        return self._md(text)

    def render_file(self, path: Path) -> HTMLFragment:
        """Read and render a markdown file.

        Raises:
            ContentError: If the file cannot be read or rendered.

        """
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Cannot read {path}: {exc}"
            raise ContentError(msg) from exc
        try:
            return self.render(text)
        except Exception as exc:
            msg = f"Cannot render {path}: {exc}"
            raise ContentError(msg) from exc
