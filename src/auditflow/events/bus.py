"""In-process channel for terminal audit events.

The job queue publishes each event exactly once; every subscriber owns a
private FIFO, so a slow listener never reorders or drops events for another.
"""

import asyncio

from auditflow.models.events import TerminalEvent

_CLOSED = object()


class Subscription:
    """Iterate with ``async for``; iteration ends when the bus closes."""

    def __init__(self, bus: "TerminalEventBus") -> None:
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue()

    def _put(self, item) -> None:
        self._queue.put_nowait(item)

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> TerminalEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.task_done()
            raise StopAsyncIteration
        return item

    def task_done(self) -> None:
        """Mark the last event returned by iteration as fully handled."""
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every event put on this subscription has been handled."""
        await self._queue.join()

    def cancel(self) -> None:
        self._bus.unsubscribe(self)
        self._put(_CLOSED)


class TerminalEventBus:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._closed = False

    def subscribe(self) -> Subscription:
        if self._closed:
            raise RuntimeError("event bus is closed")
        sub = Subscription(self)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def publish(self, event: TerminalEvent) -> None:
        if self._closed:
            raise RuntimeError("event bus is closed")
        for sub in list(self._subscriptions):
            sub._put(event)

    def close(self) -> None:
        """Signal end-of-stream to every subscriber."""
        if self._closed:
            return
        self._closed = True
        for sub in self._subscriptions:
            sub._put(_CLOSED)
        self._subscriptions.clear()
