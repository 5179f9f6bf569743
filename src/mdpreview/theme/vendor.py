"""Download the browser libraries the preview page loads for diagrams.

The page's Content-Security-Policy only allows same-origin scripts, so
mermaid and svg-pan-zoom are served from ``/vendor/<name>``. They are not
shipped in the wheel; ``mdpreview --fetch-vendor`` downloads the pinned
builds into the per-user cache once.
"""

from __future__ import annotations

import sys
import urllib.request
from pathlib import Path
from urllib.error import URLError

from mdpreview._errors import VendorError
from mdpreview.theme import VENDOR_LIBRARIES, VENDOR_SCRIPTS, user_vendor_dir

# Pinned builds on the jsDelivr npm mirror
VENDOR_URLS: dict[str, str] = {
    "mermaid": "https://cdn.jsdelivr.net/npm/mermaid@11.4.1/dist/mermaid.min.js",
    "svg-pan-zoom": "https://cdn.jsdelivr.net/npm/svg-pan-zoom@3.6.1/dist/svg-pan-zoom.min.js",
}


def fetch_vendor(
    dest: Path | None = None,
    *,
    libraries: tuple[str, ...] = VENDOR_LIBRARIES,
    timeout: float = 30.0,
) -> list[Path]:
    """Download each library's entry script under ``dest/<name>/``.

    Args:
        dest: Vendor root (defaults to :func:`user_vendor_dir`).
        libraries: Which libraries to fetch.
        timeout: Per-download timeout in seconds.

    Returns:
        Paths of the written scripts.

    Raises:
        VendorError: If a download or write fails.

    """
    root = dest if dest is not None else user_vendor_dir()
    written: list[Path] = []
    for name in libraries:
        url = VENDOR_URLS[name]
        target = root / name / VENDOR_SCRIPTS[name]
        print(f"  Fetching {name} from {url}", file=sys.stderr)
        try:
            with urllib.request.urlopen(url, timeout=timeout) as resp:
                payload = resp.read()
        except (URLError, OSError) as exc:
            msg = f"Cannot download {name} from {url}: {exc}"
            raise VendorError(msg) from exc
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as exc:
            msg = f"Cannot write {target}: {exc}"
            raise VendorError(msg) from exc
        print(f"  ✓ {name} -> {target}", file=sys.stderr)
        written.append(target)
    return written
