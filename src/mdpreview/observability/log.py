"""Event log — bounded ring buffer of diagnostic events.

Watcher callbacks, the rebuild task and pounce's connection hooks append
here; the stats endpoint reads it back. One ``threading.Lock`` guards the
buffer, and readers copy it out before filtering.
"""

from __future__ import annotations

import threading
from collections import Counter, deque
from itertools import islice
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mdpreview.observability.events import StackEvent


def _event_path(event: object) -> str:
    return getattr(event, "path", None) or getattr(event, "trigger_path", None) or ""


class EventLog:
    """Thread-safe event store that drops its oldest entries when full.

    Args:
        max_events: Capacity of the buffer.

    """

    __slots__ = ("_buffer", "_lock")

    def __init__(self, max_events: int = 1_000) -> None:
        self._buffer: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    @property
    def max_events(self) -> int:
        return self._buffer.maxlen or 0

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def _newest_first(self) -> list[StackEvent]:
        with self._lock:
            return list(reversed(self._buffer))

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Events matching every given filter, most recent first.

        ``path`` is a substring match on the event's ``path`` or
        ``trigger_path``. Server lifecycle events carry neither, so they
        never match a path filter.
        """

        def matches(event: StackEvent) -> bool:
            if event_type is not None and not isinstance(event, event_type):
                return False
            if since_ns and getattr(event, "timestamp_ns", 0) < since_ns:
                return False
            return path is None or path in _event_path(event)

        return list(islice(filter(matches, self._newest_first()), max(limit, 0)))

    def latest(self, event_type: type) -> StackEvent | None:
        """Most recent event of ``event_type``, if any."""
        found = self.query(event_type=event_type, limit=1)
        return found[0] if found else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def stats(self) -> dict[str, Any]:
        """Event totals for the stats endpoint."""
        with self._lock:
            by_type = Counter(type(event).__name__ for event in self._buffer)
            total = len(self._buffer)
        return {
            "total": total,
            "max_events": self.max_events,
            "by_type": dict(by_type),
        }
