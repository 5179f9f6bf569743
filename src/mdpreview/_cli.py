"""mdpreview CLI — mdpreview <file.md>.

Entry point for the ``mdpreview`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys

ERROR_NO_FILE = "Error: Please provide a markdown file path as argument"
USAGE = "Usage: mdpreview <path-to-markdown-file.md>"


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the mdpreview CLI."""
    parser = argparse.ArgumentParser(
        prog="mdpreview",
        description="Live-reloading preview server for a markdown file.",
        epilog="Set WATCH_MODE=true to also rebuild and reload on source changes.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    # Optional at the argparse level so a missing file exits with 1, not 2
    parser.add_argument("file", nargs="?", help="Markdown file to preview")
    parser.add_argument("--host", default=None, help="Bind address (default 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default 4002)")
    parser.add_argument(
        "--no-open",
        dest="open_browser",
        action="store_false",
        default=None,
        help="Do not open a browser on startup",
    )
    parser.add_argument(
        "--fetch-vendor",
        action="store_true",
        help="Download mermaid and svg-pan-zoom into the user cache, then exit",
    )
    return parser


def _get_version() -> str:
    """Get the package version."""
    from mdpreview import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from mdpreview._errors import PreviewError

    if args.fetch_vendor:
        from mdpreview.theme.vendor import fetch_vendor

        try:
            fetch_vendor()
        except PreviewError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        return

    if not args.file:
        print(ERROR_NO_FILE, file=sys.stderr)
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    from mdpreview.app import preview

    try:
        preview(args.file, host=args.host, port=args.port, open_browser=args.open_browser)
    except PreviewError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
