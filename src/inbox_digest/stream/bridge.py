"""Wake an event loop when a worker pool :class:`ResultStream` changes."""

from __future__ import annotations

import asyncio
import queue
from collections.abc import AsyncIterator
from types import TracebackType
from typing import TypeVar

from ..ingestion.dispatcher import ResultStream

T = TypeVar("T")


class StreamWakeup:
    """Asyncio event set by producer threads after every put and on close.

    Use as a context manager so the listener is removed before the loop
    goes away. Consumers clear the event, poll the stream with
    :meth:`ResultStream.get_nowait` and wait only when it is empty, so no
    executor thread is parked on the stream.
    """

    def __init__(self, results: ResultStream[T], loop: asyncio.AbstractEventLoop) -> None:
        self._results = results
        self._loop = loop
        self._changed = asyncio.Event()

    def _listener(self) -> None:
        self._loop.call_soon_threadsafe(self._changed.set)

    def __enter__(self) -> StreamWakeup:
        self._results.add_listener(self._listener)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._results.remove_listener(self._listener)

    def clear(self) -> None:
        self._changed.clear()

    async def wait(self) -> None:
        await self._changed.wait()


async def iterate_results(results: ResultStream[T]) -> AsyncIterator[T]:
    """Yield every result of ``results`` without blocking the event loop."""
    with StreamWakeup(results, asyncio.get_running_loop()) as wakeup:
        while True:
            wakeup.clear()
            try:
                item, found = results.get_nowait()
            except queue.Empty:
                await wakeup.wait()
                continue
            if not found:
                return
            yield item


__all__ = ["StreamWakeup", "iterate_results"]
