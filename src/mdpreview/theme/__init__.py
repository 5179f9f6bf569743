"""mdpreview theme loader — fallback chain for templates, assets and vendor files.

A user templates directory (``templates_dir``) takes priority. When a
template is not found there, Kida falls through to the bundled default
theme. Browser libraries (mermaid, svg-pan-zoom) are looked up in the
configured vendor directory, then the per-user cache that
``mdpreview --fetch-vendor`` fills, then the bundled theme's ``vendor/``.

Thread Safety:
    All returned values are read-only path lists. Safe for free-threading.

"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdpreview.config import PreviewConfig

# Browser libraries served under /vendor/<name>
VENDOR_LIBRARIES: tuple[str, ...] = ("mermaid", "svg-pan-zoom")

# Entry script of each library, relative to its vendor directory
VENDOR_SCRIPTS: dict[str, str] = {
    "mermaid": "dist/mermaid.min.js",
    "svg-pan-zoom": "dist/svg-pan-zoom.min.js",
}


def _bundled_theme_path() -> Path:
    """Return the absolute path to the bundled default theme."""
    return Path(__file__).parent / "default"


def user_vendor_dir() -> Path:
    """Per-user directory for downloaded browser libraries.

    ``$XDG_CACHE_HOME/mdpreview/vendor``, falling back to ``~/.cache``.
    """
    cache = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(cache) / "mdpreview" / "vendor"


def get_template_dirs(config: PreviewConfig) -> list[Path]:
    """Return template directories in priority order.

    Returns:
        ``[user_templates_dir, bundled_default_templates]`` (the user entry
        only when configured).

    """
    bundled = _bundled_theme_path() / "templates"
    dirs: list[Path] = []
    if config.templates_dir is not None and config.templates_dir != bundled:
        dirs.append(config.templates_dir)
    dirs.append(bundled)
    return dirs


def get_asset_dirs(config: PreviewConfig) -> list[Path]:
    """Return static asset directories (served under ``/static``) in priority order.

    A ``static/`` directory next to the user templates overrides the bundled
    client script and stylesheet.
    """
    bundled = _bundled_theme_path() / "assets"
    dirs: list[Path] = []
    if config.templates_dir is not None:
        user_dir = config.templates_dir.parent / "static"
        if user_dir != bundled:
            dirs.append(user_dir)
    dirs.append(bundled)
    return dirs


def get_vendor_dirs(config: PreviewConfig) -> dict[str, Path]:
    """Map each vendored browser library to the directory that provides it.

    A library counts as present when its entry script exists. Libraries
    found nowhere are left out; the page still works without them, only
    diagrams stay as source text.

    """
    roots: list[Path] = []
    if config.vendor_dir is not None:
        roots.append(config.vendor_dir)
    roots.append(user_vendor_dir())
    roots.append(_bundled_theme_path() / "vendor")

    found: dict[str, Path] = {}
    for name in VENDOR_LIBRARIES:
        for root in roots:
            candidate = root / name
            if (candidate / VENDOR_SCRIPTS[name]).is_file():
                found[name] = candidate
                break
    return found
