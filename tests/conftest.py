"""Shared test fixtures for mdpreview."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from mdpreview.config import PreviewConfig


@pytest.fixture
def md_file(tmp_path: Path) -> Path:
    """A markdown file in a temp directory."""
    path = tmp_path / "notes.md"
    path.write_text("# Hello\n\nSome *text*.\n", encoding="utf-8")
    return path


@pytest.fixture
def config(md_file: Path) -> PreviewConfig:
    """A PreviewConfig for ``md_file`` that never opens a browser."""
    return PreviewConfig(file=md_file, open_browser=False, source_dir=md_file.parent)


class FakeChannel:
    """In-memory notification channel recording every message.

    Args:
        fail: If True, every write raises.

    """

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.messages: list[str] = []
        self._close_callbacks: list[Callable[[], Any]] = []

    def write(self, message: str) -> None:
        if self.fail:
            msg = "client went away"
            raise ConnectionResetError(msg)
        self.messages.append(message)

    def on_close(self, callback: Callable[[], Any]) -> None:
        self._close_callbacks.append(callback)

    def close(self) -> None:
        for callback in self._close_callbacks:
            callback()


class StubRebuild:
    """Rebuild operation the test controls.

    Each call waits on ``release`` and then returns ``result`` (or raises
    ``error``). Tracks how many calls are in flight at once.
    """

    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        import asyncio

        self.result = result
        self.error = error
        self.release = asyncio.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def __call__(self) -> bool:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.release.wait()
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.active -= 1
