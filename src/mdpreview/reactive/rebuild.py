"""Rebuild coordinator — at most one rebuild in flight.

Source edits arrive in bursts (save-all, formatters, branch switches). The
coordinator runs the rebuild for the first trigger and drops the others
while it is running; the next save after it finishes triggers a fresh one.

State machine::

    IDLE --rebuild()--> RUNNING --(success | failure | error)--> IDLE

On success the caller's callback runs (in practice: broadcast ``reload``).
Failures are reported on stderr and never propagate.
"""

from __future__ import annotations

import asyncio
import inspect
import sys
import time
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from mdpreview._errors import RebuildError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mdpreview._types import RebuildOperation, SuccessCallback
    from mdpreview.observability.collector import StackCollector


class RebuildState(Enum):
    """State of the rebuild coordinator."""

    IDLE = "idle"
    RUNNING = "running"


class SubprocessRebuild:
    """Rebuild step that runs an external command.

    Exit code 0 is success; anything else (including a timeout) is failure.
    The command's combined output is echoed to stderr.

    Args:
        command: Program and arguments (no shell).
        cwd: Working directory for the command.
        timeout: Seconds before the command is killed and counted as failed.

    """

    def __init__(
        self,
        command: Sequence[str],
        cwd: Path | None = None,
        timeout: float = 300.0,
    ) -> None:
        if not command:
            msg = "rebuild command is empty"
            raise RebuildError(msg)
        self.command = tuple(command)
        self.cwd = cwd
        self.timeout = timeout

    async def __call__(self) -> bool:
        print(f"  Rebuilding: {' '.join(self.command)}", file=sys.stderr)

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            msg = f"Cannot start rebuild command {self.command[0]!r}: {exc}"
            raise RebuildError(msg) from exc

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            print(f"  Rebuild timed out after {self.timeout:.0f}s", file=sys.stderr)
            return False

        if stdout:
            sys.stderr.write(stdout.decode("utf-8", errors="replace"))

        if process.returncode != 0:
            print(f"  ✗ Rebuild failed with code {process.returncode}", file=sys.stderr)
            return False
        return True


class RebuildCoordinator:
    """Serializes an expensive rebuild so that at most one runs at a time.

    ``rebuild()`` is synchronous: the IDLE check and the switch to RUNNING
    happen without an await in between, so on a single event loop two
    callers can never both start a run.

    Args:
        operation: Async callable returning True on success.
        collector: Optional diagnostics sink.

    """

    def __init__(
        self,
        operation: RebuildOperation,
        collector: StackCollector | None = None,
    ) -> None:
        self._operation = operation
        self._collector = collector
        self._state = RebuildState.IDLE
        self._task: asyncio.Task[bool] | None = None

    @property
    def state(self) -> RebuildState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is RebuildState.RUNNING

    def rebuild(
        self,
        on_success: SuccessCallback | None = None,
        *,
        trigger: Path | str = "",
    ) -> asyncio.Task[bool] | None:
        """Start a rebuild unless one is already running.

        Must be called from inside a running event loop.

        Args:
            on_success: Called (and awaited if it returns an awaitable) only
                when the rebuild succeeds.
            trigger: File that caused the request, for diagnostics.

        Returns:
            The task running the rebuild (resolves to the success flag), or
            None when the request was dropped.

        """
        if self._state is RebuildState.RUNNING:
            print("  Rebuild already in progress, skipping...", file=sys.stderr)
            if self._collector is not None:
                self._collector.record_rebuild(str(trigger), "skipped")
            return None

        self._state = RebuildState.RUNNING
        self._task = asyncio.create_task(self._run(on_success, str(trigger)))
        return self._task

    async def _run(self, on_success: SuccessCallback | None, trigger: str) -> bool:
        t0 = time.perf_counter()
        try:
            ok = bool(await self._operation())
        except Exception as exc:
            print(f"  Rebuild error: {exc}", file=sys.stderr)
            ok = False
        finally:
            self._state = RebuildState.IDLE

        duration_ms = (time.perf_counter() - t0) * 1000
        if self._collector is not None:
            self._collector.record_rebuild(
                trigger, "success" if ok else "failure", duration_ms=duration_ms,
            )

        if not ok:
            return False

        print(f"  ✓ Rebuild complete in {duration_ms:.0f}ms", file=sys.stderr)
        if on_success is not None:
            try:
                result = on_success()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                print(f"  Post-rebuild callback error: {exc}", file=sys.stderr)
        return True
