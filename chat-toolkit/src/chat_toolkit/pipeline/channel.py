"""
Per-request hand-off between a stream producer and the transport.

The producer (model invocation plus persistence) sends events; the transport
iterates them until the channel is closed. The queue holds at most one event,
so a slow reader holds the producer back instead of letting deltas pile up.

When the client goes away the transport detaches: the pending event is
dropped, later sends return immediately, and the producer can keep running to
completion without anyone reading.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class ResponseChannel(Generic[T]):
    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=1)
        self._closed = False
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def send(self, item: T) -> None:
        if self._closed:
            raise RuntimeError("Cannot send on a closed channel")
        if not self._detached:
            await self._queue.put(item)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._detached:
            await self._queue.put(_CLOSED)

    def detach(self) -> None:
        self._detached = True
        # Free the slot so a producer blocked in 'send' or 'close' can move on.
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
