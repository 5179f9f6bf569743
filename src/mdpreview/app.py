"""mdpreview application — wires the reload pipeline into a Chirp app.

``build_app`` assembles every component for a config and returns them
together; ``preview`` is the entry point used by the CLI.

Routes:
    GET /                           the rendered page
    GET /events                     SSE stream, ``data: reload`` on change
    GET /__preview/stats            event log summary (JSON)
    GET /vendor/highlight/theme.css Pygments stylesheet
    /static, /vendor/<library>      bundled and vendored files
"""

from __future__ import annotations

import asyncio
import html
import json
import sys
import time
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mdpreview._errors import ContentError
from mdpreview.config import PreviewConfig
from mdpreview.config_loader import load_config

if TYPE_CHECKING:
    from chirp import App
    from chirp.http.request import Request

    from mdpreview._types import RebuildOperation
    from mdpreview.observability.collector import StackCollector
    from mdpreview.reactive.orchestrator import PreviewState, ReloadOrchestrator
    from mdpreview.reactive.registry import ConnectionRegistry

PAGE_TEMPLATE = "preview.html"
HIGHLIGHT_CSS_PATH = "/vendor/highlight/theme.css"
STATS_ENDPOINT = "/__preview/stats"
EVENTS_ENDPOINT = "/events"


@dataclass(slots=True)
class PreviewApp:
    """A fully wired preview server, ready to ``app.run()``.

    Attributes:
        config: Resolved configuration.
        app: The Chirp application.
        state: Rendered content cell.
        registry: Open reload channels.
        orchestrator: Watcher-to-registry coordinator.
        collector: Diagnostics sink (also pounce's lifecycle collector).
        warnings: Non-fatal startup problems for the banner.

    """

    config: PreviewConfig
    app: App
    state: PreviewState
    registry: ConnectionRegistry
    orchestrator: ReloadOrchestrator
    collector: StackCollector
    warnings: list[str] = field(default_factory=list)


def _create_chirp_app(config: PreviewConfig, *, debug: bool = False) -> App:
    """Create a Chirp App bound to the configured host and port."""
    from chirp import App, AppConfig

    from mdpreview.theme import get_template_dirs

    app_config = AppConfig(
        template_dir=get_template_dirs(config)[0],
        debug=debug,
        host=config.host,
        port=config.port,
        # One worker: watchers, content cell and channel registry live in this process
        workers=1,
    )
    return App(config=app_config)


class PageRenderer:
    """Wraps the current content fragment in the page template.

    Uses a Kida environment with the theme fallback chain, so a user
    ``preview.html`` overrides the bundled one.

    Args:
        config: Supplies the template directories and page title.
        vendor: Vendored libraries available to the page (name -> directory).

    """

    def __init__(self, config: PreviewConfig, vendor: dict[str, Path]) -> None:
        from kida import Environment, FileSystemLoader

        from mdpreview.theme import VENDOR_SCRIPTS, get_template_dirs

        self._env = Environment(
            loader=FileSystemLoader(get_template_dirs(config)),
            autoescape=False,
        )
        self._title = html.escape(config.title)
        self._vendor_scripts = "\n".join(
            f'  <script src="/vendor/{name}/{VENDOR_SCRIPTS[name]}"></script>'
            for name in vendor
            if name in VENDOR_SCRIPTS
        )

    def render(self, content: str) -> str:
        template = self._env.get_template(PAGE_TEMPLATE)
        return template.render(
            title=self._title,
            content=content,
            vendor_scripts=self._vendor_scripts,
        )


def _register_routes(
    app: App,
    page: PageRenderer,
    state: PreviewState,
    registry: ConnectionRegistry,
    collector: StackCollector,
    highlight_stylesheet: str,
) -> None:
    """Register the page, SSE, stats, and highlight theme routes."""
    from chirp import EventStream, SSEEvent
    from chirp.http.response import Response

    from mdpreview.observability.events import ContentReloaded
    from mdpreview.reactive.registry import QueueChannel

    async def index_handler(request: Request) -> Any:
        return Response(
            body=page.render(state.html),
            status=200,
            content_type="text/html; charset=utf-8",
        )

    async def events_handler(request: Request) -> Any:
        channel = QueueChannel()
        registry.attach(channel)
        collector.record_channel("opened", open_channels=registry.count())
        channel.on_close(
            lambda: collector.record_channel("closed", open_channels=registry.count())
        )

        async def generate():  # type: ignore[return]
            async for message in channel.messages():
                yield SSEEvent(data=message)

        return EventStream(generate())

    async def stats_handler(request: Request) -> Any:
        last = collector.log.latest(ContentReloaded)
        payload = json.dumps(
            {
                "open_channels": registry.count(),
                "rendered_ns": state.rendered_ns,
                "last_reload": (
                    {"path": last.path, "ok": last.ok, "error": last.error}
                    if last is not None
                    else None
                ),
                "event_log": collector.log.stats(),
            },
            indent=2,
        )
        return Response(body=payload, status=200, content_type="application/json")

    async def highlight_css_handler(request: Request) -> Any:
        return Response(
            body=highlight_stylesheet,
            status=200,
            content_type="text/css; charset=utf-8",
        )

    app.route("/", methods=["GET"], name="preview:index")(index_handler)
    app.route(EVENTS_ENDPOINT, name="preview:events")(events_handler)
    app.route(STATS_ENDPOINT, methods=["GET"], name="preview:stats")(stats_handler)
    app.route(HIGHLIGHT_CSS_PATH, methods=["GET"], name="preview:highlight-css")(
        highlight_css_handler
    )


def _mount_static_files(app: App, config: PreviewConfig, vendor: dict[str, Path]) -> list[str]:
    """Mount the client assets and vendored libraries.

    Returns:
        Warnings for libraries that could not be found.

    """
    from chirp.middleware import StaticFiles

    from mdpreview.theme import VENDOR_LIBRARIES, get_asset_dirs

    for asset_dir in get_asset_dirs(config):
        if asset_dir.is_dir():
            app.add_middleware(StaticFiles(directory=asset_dir, prefix="/static"))

    for name, directory in vendor.items():
        app.add_middleware(StaticFiles(directory=directory, prefix=f"/vendor/{name}"))

    return [
        f"{name} not found; run 'mdpreview --fetch-vendor' or set vendor_dir"
        " (diagrams render as source text)"
        for name in VENDOR_LIBRARIES
        if name not in vendor
    ]


def _open_browser(url: str) -> None:
    print(f"  Opening browser at {url}", file=sys.stderr)
    try:
        webbrowser.open(url)
    except webbrowser.Error as exc:
        print(f"  Could not open a browser: {exc}", file=sys.stderr)


def _wire_lifecycle(app: App, orchestrator: ReloadOrchestrator, config: PreviewConfig) -> None:
    """Start the watchers with the server and stop them on shutdown.

    Flow:
        on_startup  -> orchestrator.start() (awatch tasks on the server's loop)
                       -> open the browser (unless disabled)
        on_shutdown -> orchestrator.stop()

    """

    @app.on_startup
    async def _start_watching() -> None:
        await orchestrator.start()
        if config.open_browser:
            await asyncio.to_thread(_open_browser, config.url)

    @app.on_shutdown
    async def _stop_watching() -> None:
        await orchestrator.stop()


def build_app(
    config: PreviewConfig,
    *,
    operation: RebuildOperation | None = None,
    collector: StackCollector | None = None,
) -> PreviewApp:
    """Assemble the preview server for ``config``.

    Renders the markdown file once; the server is never started on a file
    that cannot be rendered.

    Args:
        config: Resolved configuration.
        operation: Rebuild step for development mode (defaults to running
            ``config.rebuild_command``).
        collector: Diagnostics sink (a fresh one by default).

    Raises:
        ContentError: If the markdown file cannot be read or rendered.
        ConfigError: If the highlight style is unknown.

    """
    from mdpreview.content.renderer import MarkdownRenderer, highlight_css
    from mdpreview.content.watcher import ChangeWatcher
    from mdpreview.observability import EventLog, StackCollector
    from mdpreview.reactive.orchestrator import PreviewState, ReloadOrchestrator
    from mdpreview.reactive.rebuild import RebuildCoordinator, SubprocessRebuild
    from mdpreview.reactive.registry import ConnectionRegistry
    from mdpreview.reactive.security import security_headers_middleware
    from mdpreview.theme import get_vendor_dirs

    if collector is None:
        collector = StackCollector(EventLog())
    if operation is None:
        operation = SubprocessRebuild(config.rebuild_command, cwd=config.rebuild_workdir)

    state = PreviewState()
    registry = ConnectionRegistry()
    orchestrator = ReloadOrchestrator(
        config=config,
        state=state,
        registry=registry,
        renderer=MarkdownRenderer(),
        watcher=ChangeWatcher(debounce_ms=config.debounce_ms),
        coordinator=RebuildCoordinator(operation, collector=collector),
        collector=collector,
    )
    orchestrator.load_initial()
    stylesheet = highlight_css(config.highlight_style)

    vendor = get_vendor_dirs(config)
    app = _create_chirp_app(config)
    app.add_middleware(security_headers_middleware)
    _register_routes(app, PageRenderer(config, vendor), state, registry, collector, stylesheet)
    warnings = _mount_static_files(app, config, vendor)
    _wire_lifecycle(app, orchestrator, config)

    return PreviewApp(
        config=config,
        app=app,
        state=state,
        registry=registry,
        orchestrator=orchestrator,
        collector=collector,
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def preview(file: str | Path, **kwargs: object) -> None:
    """Serve a live-reloading preview of a markdown file.

    Args:
        file: Markdown file to preview (relative paths resolve against the cwd).
        **kwargs: Override PreviewConfig fields.

    Raises:
        ContentError: If the file does not exist or cannot be rendered.

    """
    from mdpreview.banner import print_banner

    config = load_config(Path(file), **kwargs)
    if not config.file.is_file():
        msg = f"Markdown file not found: {config.file}"
        raise ContentError(msg)

    t0 = time.perf_counter()
    server = build_app(config)
    load_ms = (time.perf_counter() - t0) * 1000

    print_banner(config, load_ms=load_ms, warnings=server.warnings)

    # The collector doubles as pounce's lifecycle collector so connection
    # events land in the same EventLog as reload events.
    server.app.run(host=config.host, port=config.port, lifecycle_collector=server.collector)
