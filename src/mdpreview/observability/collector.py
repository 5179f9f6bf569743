"""Stack collector — one sink for server lifecycle and reload events.

Implements pounce's ``LifecycleCollector`` protocol (``record(event)``) so
it can be passed to ``app.run()``, and provides explicit methods for the
reload pipeline.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import Any, Literal

from mdpreview.observability.events import (
    ChannelEvent,
    ContentReloaded,
    RebuildFinished,
    ReloadBroadcast,
    now_ns,
)
from mdpreview.observability.log import EventLog


class StackCollector:
    """Unified event collector for the preview server.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- pounce LifecycleCollector protocol -----

    def record(self, event: Any) -> None:
        """Record a server lifecycle event (stored as-is)."""
        self._log.append(event)

    # ----- Reload pipeline -----

    def record_reload(
        self,
        path: str,
        *,
        ok: bool = True,
        render_ms: float = 0.0,
        error: str = "",
    ) -> None:
        """Record a content reload attempt."""
        self._log.append(
            ContentReloaded(
                path=path,
                ok=ok,
                render_ms=render_ms,
                error=error,
                timestamp_ns=now_ns(),
            )
        )

    def record_rebuild(
        self,
        trigger_path: str,
        outcome: Literal["success", "failure", "skipped"],
        *,
        duration_ms: float = 0.0,
    ) -> None:
        """Record the terminal state of a rebuild request."""
        self._log.append(
            RebuildFinished(
                trigger_path=trigger_path,
                outcome=outcome,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_broadcast(
        self,
        trigger: Literal["content", "source"],
        trigger_path: str,
        *,
        clients_notified: int = 0,
    ) -> None:
        """Record a reload fan-out."""
        self._log.append(
            ReloadBroadcast(
                trigger=trigger,
                trigger_path=trigger_path,
                clients_notified=clients_notified,
                timestamp_ns=now_ns(),
            )
        )

    def record_channel(
        self,
        kind: Literal["opened", "closed"],
        *,
        open_channels: int = 0,
    ) -> None:
        """Record a channel opening or closing."""
        self._log.append(
            ChannelEvent(
                kind=kind,
                open_channels=open_channels,
                timestamp_ns=now_ns(),
            )
        )
