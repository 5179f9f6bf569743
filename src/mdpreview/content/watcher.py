"""File watcher — reports changes to the previewed file and the source tree.

Two kinds of target:

- **content**: the markdown file itself. The parent directory is watched and
  events are filtered to that one file, so editors that save by writing a
  temp file and renaming it over the original are still seen. The callback
  fires once per debounced batch.
- **source**: a directory subtree (development mode). Paths with a segment
  starting with ``.`` are ignored, and only files with a recognised
  extension fire the callback.

Each target runs ``watchfiles.awatch`` in its own asyncio task. The blocking
part of awatch runs in a worker thread; callbacks always run on the loop.
"""

from __future__ import annotations

import asyncio
import inspect
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change, DefaultFilter

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from mdpreview._types import ChangeCallback, TargetKind

# Default allow-list for the source tree
DEFAULT_SOURCE_EXTENSIONS: tuple[str, ...] = (".ts", ".js", ".py")

# Seconds stop() waits for watch tasks before cancelling them
_STOP_TIMEOUT = 5.0


def is_source_change(
    path: Path,
    extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS,
    root: Path | None = None,
) -> bool:
    """Whether a change to ``path`` should trigger a rebuild.

    Dot-prefixed segments (``.git``, ``.venv``, ``.cache``, dotfiles) are
    checked relative to ``root`` when given, so a project that itself lives
    under a hidden directory is still watched.

    """
    parts = path.parts
    if root is not None:
        try:
            parts = path.relative_to(root).parts
        except ValueError:
            return False
    if any(part.startswith(".") for part in parts):
        return False
    return path.name.endswith(tuple(extensions))



class SourceFilter(DefaultFilter):
    """watchfiles filter for the source tree.

    Layers the extension allow-list and the dot-segment rule on top of
    watchfiles' default ignores (``__pycache__``, ``node_modules``, editor
    swap files).
    """

    def __init__(self, root: Path, extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS) -> None:
        super().__init__()
        self.root = root
        self.extensions = tuple(extensions)

    def __call__(self, change: Change, path: str) -> bool:
        return super().__call__(change, path) and is_source_change(
            Path(path), self.extensions, self.root,
        )


class ContentFilter:
    """watchfiles filter accepting only events for one file."""

    __slots__ = ("file",)

    def __init__(self, file: Path) -> None:
        self.file = file

    def __call__(self, change: Change, path: str) -> bool:
        return Path(path) == self.file


class ChangeWatcher:
    """Watches content and source targets and invokes callbacks on change.

    Args:
        debounce_ms: Events inside this window are delivered as one batch.
        step_ms: How often awatch polls for new events inside the window.

    """

    def __init__(self, *, debounce_ms: int = 300, step_ms: int = 50) -> None:
        self.debounce_ms = debounce_ms
        self.step_ms = step_ms
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        """Whether any watch task is still active."""
        return any(not task.done() for task in self._tasks)

    def watch_content(self, path: Path, on_change: ChangeCallback) -> asyncio.Task[None] | None:
        """Watch a single file; ``on_change(path)`` fires once per batch.

        Returns:
            The watch task, or None if the file's directory does not exist.

        """
        # watchfiles reports real paths (e.g. /private/var on macOS)
        directory = path.parent.resolve()
        path = directory / path.name
        if not directory.is_dir():
            print(f"  Cannot watch {path}: {directory} does not exist", file=sys.stderr)
            return None

        async def _on_batch(paths: list[Path]) -> None:
            await self._dispatch(on_change, path)

        return self._spawn(directory, ContentFilter(path), _on_batch, "content", recursive=False)

    def watch_source(
        self,
        root: Path,
        on_change: ChangeCallback,
        *,
        extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS,
    ) -> asyncio.Task[None] | None:
        """Watch a directory subtree; ``on_change(path)`` fires per matching file.

        Returns:
            The watch task, or None if ``root`` is not a directory.

        """
        root = root.resolve()
        if not root.is_dir():
            print(f"  Cannot watch source tree {root}: not a directory", file=sys.stderr)
            return None

        async def _on_batch(paths: list[Path]) -> None:
            for changed in paths:
                await self._dispatch(on_change, changed)

        return self._spawn(root, SourceFilter(root, extensions), _on_batch, "source", recursive=True)

    async def stop(self) -> None:
        """Stop every watch task and wait for them to finish.

        Safe to call when nothing was started, and more than once. No
        callback runs after this returns.
        """
        self._stop_event.set()
        tasks, self._tasks = self._tasks, []
        if not tasks:
            return
        _done, pending = await asyncio.wait(tasks, timeout=_STOP_TIMEOUT)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)

    # ----- internals -----

    def _spawn(
        self,
        directory: Path,
        watch_filter: Callable[[Change, str], bool],
        on_batch: Callable[[list[Path]], object],
        target: TargetKind,
        *,
        recursive: bool,
    ) -> asyncio.Task[None]:
        if self._stop_event.is_set():
            # Restart after stop()
            self._stop_event = asyncio.Event()
        task = asyncio.create_task(
            self._watch(directory, watch_filter, on_batch, target, recursive=recursive),
            name=f"mdpreview-watch-{target}",
        )
        self._tasks.append(task)
        return task

    async def _watch(
        self,
        directory: Path,
        watch_filter: Callable[[Change, str], bool],
        on_batch: Callable[[list[Path]], object],
        target: TargetKind,
        *,
        recursive: bool,
    ) -> None:
        from watchfiles import awatch

        stop_event = self._stop_event
        try:
            async for changes in awatch(
                directory,
                watch_filter=watch_filter,
                stop_event=stop_event,
                debounce=self.debounce_ms,
                step=self.step_ms,
                recursive=recursive,
            ):
                if stop_event.is_set():
                    break
                paths = sorted({Path(raw_path) for _change, raw_path in changes})
                if paths:
                    await on_batch(paths)  # type: ignore[misc]
        except Exception as exc:
            print(f"  Watcher error ({target}, {directory}): {exc}", file=sys.stderr)

    async def _dispatch(self, on_change: ChangeCallback, path: Path) -> None:
        if self._stop_event.is_set():
            return
        try:
            result = on_change(path)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            print(f"  Change handler error for {path}: {exc}", file=sys.stderr)
