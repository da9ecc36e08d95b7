"""Thread-safe bridge from platform callbacks to the event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

T = TypeVar("T")

_logger = logging.getLogger("chat_voice.channel")


class EventChannel(Generic[T]):
    """Callable sink that queues platform events for one session.

    Platform adapters may call the sink from worker threads. Once closed,
    the channel silently drops anything still in flight so a torn-down
    session never observes late events.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, *, name: str = "channel") -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[T] = asyncio.Queue()
        self._closed = False
        self.name = name

    @property
    def closed(self) -> bool:
        return self._closed

    def __call__(self, event: T) -> None:
        if self._closed:
            _logger.debug("channel_event_dropped", extra={"channel": self.name, "event": type(event).__name__})
            return
        if self._loop.is_closed():
            _logger.warning("channel_loop_closed", extra={"channel": self.name, "event": type(event).__name__})
            return
        self._loop.call_soon_threadsafe(self._deliver, event)

    def put(self, event: T) -> None:
        """Enqueue an event from the loop thread, bypassing the thread hop."""
        if not self._closed:
            self._queue.put_nowait(event)

    async def get(self) -> T:
        return await self._queue.get()

    def close(self) -> None:
        self._closed = True

    def _deliver(self, event: T) -> None:
        if self._closed:
            _logger.debug("channel_event_dropped", extra={"channel": self.name, "event": type(event).__name__})
            return
        self._queue.put_nowait(event)


def current_task_or_none() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
