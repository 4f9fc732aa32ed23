"""Bounded, closable stream connecting a generator task to its reader."""

from __future__ import annotations

import asyncio

from prodbench.models.message import OutboundMessage

MAX_STREAM_CAPACITY = 65536

_CLOSED = object()


def stream_capacity(count: int) -> int:
    """Buffer size for a stream of ``count`` messages."""
    return max(1, min(count // 4, MAX_STREAM_CAPACITY))


class MessageStream:
    """Single-writer stream of outbound messages.

    The writer awaits ``put`` (blocking while the buffer is full) and signals
    the end with ``close``. Readers iterate with ``async for`` until the
    stream is closed. If the writer closes with an error, the reader gets
    that error raised once the buffered messages are drained.
    """

    def __init__(self, capacity: int):
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._exhausted = False
        self._error: BaseException | None = None
        self._task: asyncio.Task | None = None

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    async def put(self, message: OutboundMessage) -> None:
        if self._closed:
            raise RuntimeError("put on a closed stream")
        await self._queue.put(message)

    async def close(self, error: BaseException | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = error
        await self._queue.put(_CLOSED)

    def attach(self, task: asyncio.Task) -> None:
        """Keep a reference to the task writing into this stream."""
        self._task = task

    async def abandon(self) -> None:
        """Cancel the writer task, if it is still running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> OutboundMessage:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._exhausted = True
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return item  # type: ignore[return-value]
