"""Event model for preview diagnostics.

Defines the events recorded by the reload pipeline. Server lifecycle
events from pounce are stored alongside them as-is.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Content events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ContentReloaded:
    """The markdown file was re-read and re-rendered (or failed to be).

    Attributes:
        path: Absolute path to the markdown file.
        ok: False when reading or rendering failed; the old content stays.
        render_ms: Time spent reading and rendering in milliseconds.
        error: Error message when ``ok`` is False.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    ok: bool
    render_ms: float
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Rebuild events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RebuildFinished:
    """A rebuild request reached a terminal state.

    Attributes:
        trigger_path: Source file whose change requested the rebuild.
        outcome: ``success``/``failure`` for a run, ``skipped`` when a
            rebuild was already running.
        duration_ms: Wall-clock time of the run (0 for skipped).
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    trigger_path: str
    outcome: Literal["success", "failure", "skipped"]
    duration_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReloadBroadcast:
    """A reload message was fanned out to the open channels.

    Attributes:
        trigger: What caused the reload.
        trigger_path: File whose change caused the reload.
        clients_notified: Channels that accepted the message.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    trigger: Literal["content", "source"]
    trigger_path: str
    clients_notified: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ChannelEvent:
    """A notification channel opened or closed.

    Attributes:
        kind: ``opened`` or ``closed``.
        open_channels: Registered channels after the change.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["opened", "closed"]
    open_channels: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = (
    ContentReloaded
    | RebuildFinished
    | ReloadBroadcast
    | ChannelEvent
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
