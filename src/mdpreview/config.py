"""mdpreview configuration.

PreviewConfig is the central configuration object, frozen after creation.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path

# The tool's own source tree, watched in development mode
_PACKAGE_DIR = Path(__file__).resolve().parent


def _default_rebuild_command() -> tuple[str, ...]:
    """Byte-compile the package; exits non-zero on a syntax error."""
    return (sys.executable, "-m", "compileall", "-q", str(_PACKAGE_DIR))


@dataclass(frozen=True, slots=True)
class PreviewConfig:
    """Configuration for a preview server.

    Attributes:
        file: Markdown file to preview. Always resolved to its real absolute path
              on construction.
        host: Bind address.
        port: Bind port.
        watch: Development mode: also watch ``source_dir`` and rebuild on change.
        source_dir: Directory subtree watched in development mode.
        source_extensions: File suffixes under ``source_dir`` that trigger a rebuild.
        rebuild_command: Command run by the rebuild step (argv, no shell).
        rebuild_cwd: Working directory for the rebuild (defaults to the
            parent of ``source_dir``).
        debounce_ms: Watcher debounce window; events inside it are batched.
        open_browser: Open the preview URL in a browser once the server is up.
        title: Page title.
        templates_dir: Optional directory with templates that override the
            bundled ``preview.html``.
        vendor_dir: Directory holding the ``mermaid`` and ``svg-pan-zoom``
            browser distributions (checked before the per-user cache filled by
            ``mdpreview --fetch-vendor``).
        highlight_style: Pygments style used for the code highlighting theme.

    """

    file: Path = field(default_factory=lambda: Path("README.md"))
    host: str = "127.0.0.1"
    port: int = 4002
    watch: bool = False
    source_dir: Path = _PACKAGE_DIR
    source_extensions: tuple[str, ...] = (".ts", ".js", ".py")
    rebuild_command: tuple[str, ...] = field(default_factory=_default_rebuild_command)
    rebuild_cwd: Path | None = None
    debounce_ms: int = 300
    open_browser: bool = True
    title: str = "Markdown Preview"
    templates_dir: Path | None = None
    vendor_dir: Path | None = None
    highlight_style: str = "default"

    def __post_init__(self) -> None:
        # watchfiles reports real paths; the watcher callbacks hand them back.
        object.__setattr__(self, "file", self.file.resolve())
        object.__setattr__(self, "source_dir", self.source_dir.resolve())
        if isinstance(self.source_extensions, str):
            object.__setattr__(self, "source_extensions", (self.source_extensions,))
        object.__setattr__(self, "source_extensions", tuple(self.source_extensions))
        object.__setattr__(self, "rebuild_command", tuple(self.rebuild_command))

    @property
    def url(self) -> str:
        """Address the preview is served at."""
        host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0") else self.host
        return f"http://{host}:{self.port}"

    @property
    def rebuild_workdir(self) -> Path:
        """Working directory for the rebuild command."""
        if self.rebuild_cwd is not None:
            return self.rebuild_cwd
        return self.source_dir.parent
