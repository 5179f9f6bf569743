"""Diagnostics — a bounded event log for the reload pipeline.

Aggregates events from:
- **pounce**: Connection lifecycle (via ``StackCollector.record``)
- **mdpreview**: Content reloads, rebuilds, broadcasts, channel churn

Quick Start:
    >>> from mdpreview.observability import StackCollector, EventLog
    >>> collector = StackCollector(EventLog())
    >>> collector.record_reload("/notes/README.md", render_ms=2.1)

"""

from mdpreview.observability.collector import StackCollector
from mdpreview.observability.events import (
    ChannelEvent,
    ContentReloaded,
    RebuildFinished,
    ReloadBroadcast,
    StackEvent,
    now_ns,
)
from mdpreview.observability.log import EventLog

__all__ = [
    "ChannelEvent",
    "ContentReloaded",
    "EventLog",
    "RebuildFinished",
    "ReloadBroadcast",
    "StackCollector",
    "StackEvent",
    "now_ns",
]
