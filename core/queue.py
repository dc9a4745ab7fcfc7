"""Async event queue bridging a linear producer and a single async consumer.

The run loop pushes events as it goes; the caller iterates them with
``async for``. The buffer is unbounded (no backpressure).

Terminal semantics:
- close(): buffered values are still delivered, then iteration ends.
- fail(error): every pending and future read raises ``error``.
- Whichever terminal call happens first wins; later ones are ignored.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


class AsyncEventQueue(Generic[T]):
    """Unbounded single-consumer queue with close and fail signals."""

    def __init__(self) -> None:
        self._buffer: deque[T] = deque()
        self._waiters: deque[asyncio.Future] = deque()
        self._closed = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        """True once close() or fail() has been called."""
        return self._closed

    @property
    def error(self) -> BaseException | None:
        return self._error

    def push(self, value: T) -> None:
        """Deliver a value to the oldest pending reader, or buffer it."""
        if self._closed:
            return
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(value)
                return
        self._buffer.append(value)

    def close(self) -> None:
        """End the stream after buffered values are drained."""
        if self._closed:
            return
        self._closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(_END)

    def fail(self, error: BaseException) -> None:
        """Terminate the stream with an error for all pending and future reads."""
        if self._closed:
            return
        self._closed = True
        self._error = error
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(error)

    async def get(self) -> T:
        """Read the next value.

        Raises:
            StopAsyncIteration: When the queue was closed and is drained
            BaseException: The error passed to fail()
        """
        if self._error is not None:
            raise self._error
        if self._buffer:
            return self._buffer.popleft()
        if self._closed:
            raise StopAsyncIteration

        waiter: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        value = await waiter
        if value is _END:
            raise StopAsyncIteration
        return value

    def __aiter__(self) -> AsyncEventQueue[T]:
        return self

    async def __anext__(self) -> T:
        return await self.get()

    def __len__(self) -> int:
        """Return the number of buffered values."""
        return len(self._buffer)
