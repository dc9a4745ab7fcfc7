"""Composable cancellation tokens.

An AbortSignal is set once and stays set. Signals can be combined with
``AbortSignal.any`` so that a caller's token and a per-iteration token both
cancel the same model stream, tool call or retry sleep.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .exceptions import AbortError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbortSignal:
    """A one-shot cancellation flag that async code can wait on."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._listeners: list[Callable[[AbortSignal], None]] = []
        self._sources: list[tuple[AbortSignal, Callable[[AbortSignal], None]]] = []

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def add_listener(self, listener: Callable[[AbortSignal], None]) -> None:
        """Register a callback fired once when the signal aborts."""
        if self.aborted:
            listener(self)
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[AbortSignal], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _abort(self, reason: str | None = None) -> None:
        if self.aborted:
            return
        self._reason = reason or "Operation aborted"
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(self)
            except Exception as e:
                logger.debug("Abort listener failed: %s", type(e).__name__)

    def raise_if_aborted(self) -> None:
        """Raise AbortError if the signal is already set."""
        if self.aborted:
            raise AbortError(self._reason or "Operation aborted")

    async def wait(self) -> None:
        """Block until the signal aborts."""
        await self._event.wait()

    async def sleep(self, delay_s: float) -> None:
        """Sleep for ``delay_s`` seconds unless aborted first.

        Raises:
            AbortError: If the signal aborts before or during the sleep
        """
        self.raise_if_aborted()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, delay_s))
        except asyncio.TimeoutError:
            return
        self.raise_if_aborted()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` but give up as soon as the signal aborts.

        The underlying task is cancelled when the signal wins.

        Raises:
            AbortError: If the signal aborts first
        """
        self.raise_if_aborted()
        task: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        raise AbortError(self._reason or "Operation aborted")

    @classmethod
    def any(cls, *signals: AbortSignal | None) -> AbortSignal:
        """Return a signal that aborts when any of ``signals`` aborts."""
        combined = cls()

        def follow(source: AbortSignal) -> None:
            combined._abort(source.reason)

        for signal in signals:
            if signal is None:
                continue
            if signal.aborted:
                combined._abort(signal.reason)
                break
            signal.add_listener(follow)
            combined._sources.append((signal, follow))
        return combined

    def dispose(self) -> None:
        """Detach a signal built by ``any`` from its sources."""
        sources, self._sources = self._sources, []
        for source, listener in sources:
            source.remove_listener(listener)


class AbortController:
    """Owner side of an AbortSignal."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: str | None = None) -> None:
        self.signal._abort(reason)


def is_abort_error(error: BaseException) -> bool:
    """True for cancellation errors, including messages mentioning abort."""
    if isinstance(error, (AbortError, asyncio.CancelledError)):
        return True
    return "abort" in str(error).lower()
