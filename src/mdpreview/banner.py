"""Startup banner — what is being previewed, where, and what is watched.

Colour is decided once at import: off when ``NO_COLOR`` is set, when
``TERM=dumb``, or when stderr is not a terminal.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdpreview.config import PreviewConfig


def _color_enabled() -> bool:
    # https://no-color.org
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


_COLOR = _color_enabled()

_SGR = {"bold": "1", "dim": "2", "green": "32", "yellow": "33", "cyan": "36"}


def _paint(text: str, *styles: str) -> str:
    """Wrap ``text`` in SGR codes for ``styles`` (plain when colour is off)."""
    if not _COLOR or not styles:
        return text
    codes = ";".join(_SGR[s] for s in styles)
    return f"\033[{codes}m{text}\033[0m"


def _link(url: str) -> str:
    """OSC 8 hyperlink so terminals that support it make the URL clickable."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{_paint(url, 'bold', 'cyan')}\033]8;;\033\\"


def _tree(rows: list[str]) -> list[str]:
    """Prefix rows with box-drawing branches, the last one closing the tree."""
    out = []
    for i, row in enumerate(rows):
        branch = "└─" if i == len(rows) - 1 else "├─"
        out.append(f"  {_paint(branch, 'dim')} {row}")
    return out


def print_banner(
    config: PreviewConfig,
    *,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> None:
    """Print the startup banner to stderr.

    Args:
        config: Resolved PreviewConfig.
        load_ms: Time spent on the initial render in milliseconds.
        warnings: Non-fatal startup problems, shown last.

    """
    from mdpreview import __version__

    badge = _paint("[watch]", "green") if config.watch else _paint("[preview]", "cyan")
    rendered = f" {_paint(f'in {load_ms:.0f}ms', 'dim')}" if load_ms > 0 else ""

    rows = [
        f"previewing: {config.file}{rendered}",
        f"watching markdown: {_paint(str(config.file), 'dim')}",
    ]
    if config.watch:
        rows.append(
            f"watching source: {_paint(str(config.source_dir), 'dim')} "
            + _paint("(auto-rebuild enabled)", "green")
        )
    rows.append(f"{_paint('live', 'green')} reload on {_paint('/events', 'dim')}")

    lines = [
        "",
        f"  {_paint('Markdown Preview', 'bold')} {_paint(f'v{__version__}', 'dim')}  {badge}",
        f"  {_paint('─' * 43, 'dim')}",
        *_tree(rows),
        "",
        f"  {_link(config.url)}",
        "",
        f"  {_paint('Edit the markdown file and the page updates automatically.', 'dim')}",
    ]
    if warnings:
        lines.append("")
        lines.extend(f"  {_paint('!', 'yellow')} {message}" for message in warnings)
    lines.append("")

    print("\n".join(lines), file=sys.stderr)
