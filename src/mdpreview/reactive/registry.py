"""Connection registry — the set of open reload channels.

Each browser tab holds one long-lived ``/events`` connection. The registry
tracks those channels and fans a message out to all of them. A channel is
anything with ``write(message)`` and ``on_close(callback)``, so the registry
can be exercised with in-memory fakes.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from mdpreview._errors import ChannelError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from mdpreview._types import Message

# Messages a slow tab may have pending before writes to it start failing
_MAX_PENDING = 16


class Channel(Protocol):
    """One-way push connection to a single client."""

    def write(self, message: Message) -> None:
        """Send ``message``; raises if the client can no longer receive it."""
        ...

    def on_close(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` once when the connection closes."""
        ...


@dataclass(eq=False, slots=True)
class QueueChannel:
    """Channel backed by a bounded ``asyncio.Queue``.

    The SSE response generator drains the queue via :meth:`messages`; when
    the generator ends (client disconnect, server shutdown) the channel
    closes and its close callbacks run. Compared by identity.

    Attributes:
        queue: Pending messages for the client.

    """

    queue: asyncio.Queue[Message] = field(
        default_factory=lambda: asyncio.Queue(maxsize=_MAX_PENDING),
    )
    _closed: bool = field(default=False, init=False)
    _close_callbacks: list[Callable[[], Any]] = field(default_factory=list, init=False)

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, message: Message) -> None:
        if self._closed:
            msg = "channel is closed"
            raise ChannelError(msg)
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull as exc:
            msg = f"channel backlog full ({self.queue.maxsize} pending)"
            raise ChannelError(msg) from exc

    def on_close(self, callback: Callable[[], Any]) -> None:
        if self._closed:
            callback()
            return
        self._close_callbacks.append(callback)

    def close(self) -> None:
        """Mark the channel closed and run close callbacks (once)."""
        if self._closed:
            return
        self._closed = True
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            callback()

    async def messages(self) -> AsyncIterator[Message]:
        """Yield messages as they arrive until the consumer goes away.

        Catches ``CancelledError`` (client disconnect) and ``GeneratorExit``
        (generator cleanup) so the stream ends quietly; the channel is
        closed either way.

        """
        try:
            while True:
                yield await self.queue.get()
        except (asyncio.CancelledError, GeneratorExit):
            return
        finally:
            self.close()


class ConnectionRegistry:
    """Tracks open notification channels and broadcasts to them.

    Registration order is preserved so broadcasts are deterministic.
    Registering the same channel twice keeps a single entry; unregistering
    an unknown channel is a no-op.

    Thread-safe: the channel map is guarded by a lock, and broadcast
    iterates a snapshot so writes happen outside it.

    """

    def __init__(self) -> None:
        self._channels: dict[int, Channel] = {}
        self._lock = threading.Lock()

    def register(self, channel: Channel) -> None:
        """Add a channel."""
        with self._lock:
            self._channels.setdefault(id(channel), channel)

    def unregister(self, channel: Channel) -> None:
        """Remove a channel if present."""
        with self._lock:
            if self._channels.get(id(channel)) is channel:
                del self._channels[id(channel)]

    def attach(self, channel: Channel) -> None:
        """Register ``channel`` and unregister it automatically when it closes."""
        self.register(channel)
        channel.on_close(lambda: self.unregister(channel))

    def snapshot(self) -> tuple[Channel, ...]:
        """Registered channels in registration order (no lock held on return)."""
        with self._lock:
            return tuple(self._channels.values())

    def broadcast(self, message: Message) -> int:
        """Write ``message`` to every registered channel.

        A channel whose write raises is skipped; the remaining channels
        still receive the message.

        Returns:
            Number of channels the message was delivered to.

        """
        delivered = 0
        for channel in self.snapshot():
            try:
                channel.write(message)
            except Exception:
                continue  # Client went away mid-broadcast
            delivered += 1
        return delivered

    def count(self) -> int:
        """Number of registered channels."""
        with self._lock:
            return len(self._channels)
