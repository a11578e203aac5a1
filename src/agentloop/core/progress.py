"""
Progress channel between a running tool and the agent loop.

Executors may run in worker threads, so ``emit`` hands messages to the owning
event loop with ``call_soon_threadsafe``. The loop drains the queue and relays
each message as a ``tool_progress`` event without batching.
"""

import asyncio
import threading


class ProgressChannel:
    """Unbounded, ordered queue of progress messages for one tool call."""

    _CLOSED = object()

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._loop_thread = threading.get_ident()

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, message: str) -> None:
        """Publish a progress message; safe to call from any thread."""
        if self._closed:
            return
        if threading.get_ident() == self._loop_thread:
            self._queue.put_nowait(str(message))
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, str(message))

    def close(self) -> None:
        """Mark the end of the stream; must be called from the loop thread."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def get(self) -> str | None:
        """Next message, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is self._CLOSED:
            return None
        return item

    def drain_nowait(self) -> list[str]:
        """Pop every queued message without waiting."""
        messages = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is not self._CLOSED:
                messages.append(item)
        return messages
