"""Reload orchestrator — connects the watcher to the registry.

Flow:
    1. ChangeWatcher reports a change to the markdown file
       -> re-render, swap the content cell, broadcast ``reload``
    2. (development mode) ChangeWatcher reports a source change
       -> RebuildCoordinator runs the rebuild
       -> on success, broadcast ``reload``

The orchestrator never touches the HTTP layer; it only sees the registry.
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from mdpreview._errors import PreviewError

if TYPE_CHECKING:
    from mdpreview._types import HTMLFragment, TargetKind
    from mdpreview.config import PreviewConfig
    from mdpreview.content.renderer import MarkdownRenderer
    from mdpreview.content.watcher import ChangeWatcher
    from mdpreview.observability.collector import StackCollector
    from mdpreview.reactive.rebuild import RebuildCoordinator
    from mdpreview.reactive.registry import ConnectionRegistry

# Payload pushed to every open channel when the page should reload
RELOAD_MESSAGE = "reload"


@dataclass(slots=True)
class PreviewState:
    """The rendered content served at ``/``.

    Replaced wholesale by one assignment; readers never see a partial value.

    Attributes:
        html: Current HTML fragment.
        rendered_ns: Monotonic timestamp of the last successful render.

    """

    html: HTMLFragment = ""
    rendered_ns: int = 0


class ReloadOrchestrator:
    """Routes watcher events to re-rendering, rebuilding, and broadcasting.

    Args:
        config: Preview configuration (file, watch mode, source tree).
        state: Content cell read by the ``/`` handler.
        registry: Open reload channels.
        renderer: Markdown renderer.
        watcher: File watcher.
        coordinator: Rebuild coordinator used in development mode.
        collector: Optional diagnostics sink.

    """

    def __init__(
        self,
        config: PreviewConfig,
        state: PreviewState,
        registry: ConnectionRegistry,
        renderer: MarkdownRenderer,
        watcher: ChangeWatcher,
        coordinator: RebuildCoordinator,
        collector: StackCollector | None = None,
    ) -> None:
        self._config = config
        self._state = state
        self._registry = registry
        self._renderer = renderer
        self._watcher = watcher
        self._coordinator = coordinator
        self._collector = collector

    @property
    def state(self) -> PreviewState:
        return self._state

    def load_initial(self) -> None:
        """Render the file once before the server starts.

        Raises:
            ContentError: If the file cannot be read or rendered.

        """
        self._state.html = self._renderer.render_file(self._config.file)
        self._state.rendered_ns = time.monotonic_ns()

    def reload_content(self, path: Path | None = None) -> bool:
        """Re-render the markdown file and notify every open page.

        On failure the previous content stays in place and nothing is
        broadcast.

        Returns:
            True if the content was replaced.

        """
        path = path or self._config.file
        print(f"\n  Markdown file changed: {path}", file=sys.stderr)

        t0 = time.perf_counter()
        try:
            html = self._renderer.render_file(self._config.file)
        except PreviewError as exc:
            print(f"  Reload failed, keeping previous content: {exc}", file=sys.stderr)
            if self._collector is not None:
                self._collector.record_reload(str(path), ok=False, error=str(exc))
            return False
        render_ms = (time.perf_counter() - t0) * 1000

        self._state.html = html
        self._state.rendered_ns = time.monotonic_ns()
        if self._collector is not None:
            self._collector.record_reload(str(path), render_ms=render_ms)

        self.broadcast_reload("content", path)
        return True

    def on_source_change(self, path: Path) -> None:
        """Ask the coordinator for a rebuild; reload the pages if it succeeds."""
        print(f"\n  Source file changed: {path}", file=sys.stderr)
        self._coordinator.rebuild(
            lambda: self.broadcast_reload("source", path),
            trigger=path,
        )

    def broadcast_reload(self, trigger: TargetKind, path: Path) -> int:
        """Send ``reload`` to every open channel.

        Returns:
            Number of channels notified.

        """
        notified = self._registry.broadcast(RELOAD_MESSAGE)
        print(f"  Notifying {notified} connected client(s) to reload...", file=sys.stderr)
        if self._collector is not None:
            self._collector.record_broadcast(trigger, str(path), clients_notified=notified)
        return notified

    async def start(self) -> None:
        """Start watching. The source tree is only watched in development mode."""
        self._watcher.watch_content(self._config.file, self.reload_content)
        if self._config.watch:
            task = self._watcher.watch_source(
                self._config.source_dir,
                self.on_source_change,
                extensions=self._config.source_extensions,
            )
            if task is not None:
                print("  Watch mode enabled: rebuilding on source changes", file=sys.stderr)

    async def stop(self) -> None:
        """Stop watching. An in-flight rebuild is left to the event loop."""
        await self._watcher.stop()
