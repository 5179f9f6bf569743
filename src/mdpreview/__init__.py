"""mdpreview — live-reloading preview server for a single markdown file.

Renders one markdown file to HTML, serves it over HTTP, and reloads every
open browser tab when the file changes. Fenced ``mermaid`` blocks render as
diagrams with pan/zoom in the browser.

Quick start::

    import mdpreview

    mdpreview.preview("README.md")

Development mode (``WATCH_MODE=true``) additionally watches the tool's own
source tree, runs a rebuild on change, and reloads the browser when the
rebuild succeeds.

Built on:

    chirp       Web framework     (routes, SSE)
    pounce      ASGI server       (serves the app)
    kida        Template engine   (page shell)
    patitas     Markdown parser   (content)
    watchfiles  File watcher      (change detection)

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "PreviewConfig",
    "__version__",
    "preview",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import mdpreview`` fast; chirp and patitas load on first use.
    """
    if name == "PreviewConfig":
        from mdpreview.config import PreviewConfig

        return PreviewConfig

    if name == "preview":
        from mdpreview.app import preview

        return preview

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
