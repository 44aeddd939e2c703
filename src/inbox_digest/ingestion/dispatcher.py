"""Bounded worker pool fanning message work out and results back in."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

from ..core.interfaces import (
    EnrichmentError,
    EnrichmentService,
    MailboxError,
    MessageSourceProtocol,
)
from ..core.models import EnrichmentResult, MessageRef, RawMessage

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WORKER_COUNT = 5
DEFAULT_MAX_RESULTS = 10

_CLOSED = object()


class ResultStream(Generic[T]):
    """Single-pass sink of results produced by the worker pool.

    Workers ``put`` results as they finish; the supervisor ``close``s the
    stream once every worker has exited. Threaded consumers either iterate
    (blocking) or call :meth:`get` with a timeout. Event-loop consumers poll
    with :meth:`get_nowait` and register a listener to be woken up instead of
    blocking a thread. Iteration cannot be restarted.
    """

    def __init__(self, cancel: threading.Event | None = None) -> None:
        """Create an open stream bound to ``cancel``."""
        self._queue: queue.Queue[object] = queue.Queue()
        self._cancel = cancel or threading.Event()
        self._closed = threading.Event()
        self._drained = False
        self._count_lock = threading.Lock()
        self._delivered = 0
        self._hooks_lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []
        self._done_callbacks: list[Callable[[], object]] = []

    # Producer side ------------------------------------------------------------
    def put(self, item: T) -> None:
        """Forward one result to the consumer."""
        with self._count_lock:
            self._delivered += 1
        self._queue.put(item)
        self._notify()

    def close(self) -> None:
        """Run the done callbacks, then mark the end of the stream.

        Consumers see the end only after the callbacks have returned.
        """
        with self._hooks_lock:
            self._closed.set()
            callbacks, self._done_callbacks = self._done_callbacks, []
        for callback in callbacks:
            _run_done_callback(callback)
        self._queue.put(_CLOSED)
        self._notify()

    # Consumer side ------------------------------------------------------------
    def get(self, timeout: float | None = None) -> tuple[T | None, bool]:
        """Return ``(item, True)`` or ``(None, False)`` once the stream is closed.

        Raises :class:`queue.Empty` when ``timeout`` elapses first.
        """
        if self._drained:
            return None, False
        return self._unwrap(self._queue.get(timeout=timeout))

    def get_nowait(self) -> tuple[T | None, bool]:
        """Like :meth:`get` but raise :class:`queue.Empty` instead of blocking."""
        if self._drained:
            return None, False
        return self._unwrap(self._queue.get_nowait())

    def _unwrap(self, item: object) -> tuple[T | None, bool]:
        if item is _CLOSED:
            self._drained = True
            return None, False
        return item, True  # type: ignore[return-value]

    def __iter__(self) -> Iterator[T]:
        """Return self; the stream is its own single-pass iterator."""
        return self

    def __next__(self) -> T:
        """Block until the next result arrives or the stream closes."""
        item, found = self.get()
        if not found:
            raise StopIteration
        return item  # type: ignore[return-value]

    # Lifecycle ------------------------------------------------------------------
    def cancel(self) -> None:
        """Ask workers to stop forwarding results."""
        if not self._cancel.is_set():
            LOGGER.debug("Result stream cancelled")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._cancel.is_set()

    @property
    def closed(self) -> bool:
        """Whether the producer side has finished."""
        return self._closed.is_set()

    @property
    def delivered(self) -> int:
        """Number of results forwarded so far."""
        with self._count_lock:
            return self._delivered

    def wait_closed(self, timeout: float | None = None) -> bool:
        """Block until every worker has exited; return whether that happened."""
        return self._closed.wait(timeout)

    # Hooks ----------------------------------------------------------------------
    def add_listener(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` from the producer thread after every put and on close.

        Listeners must not block; they typically hand a wake-up to an event loop.
        """
        with self._hooks_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        """Stop calling ``listener``; once this returns it is never called again."""
        with self._hooks_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def add_done_callback(self, callback: Callable[[], object]) -> None:
        """Run ``callback`` once every worker has exited.

        Runs immediately in the calling thread when the stream is already
        closed, otherwise in the thread that closes it.
        """
        with self._hooks_lock:
            if not self._closed.is_set():
                self._done_callbacks.append(callback)
                return
        _run_done_callback(callback)

    def _notify(self) -> None:
        with self._hooks_lock:
            for listener in self._listeners:
                listener()


def _run_done_callback(callback: Callable[[], object]) -> None:
    try:
        callback()
    except Exception:  # pylint: disable=broad-except
        LOGGER.exception("Result stream done callback failed")


class WorkerPoolDispatcher:
    """Distribute message identifiers to a fixed number of worker threads."""

    def __init__(
        self,
        source: MessageSourceProtocol,
        enrichment: EnrichmentService,
        *,
        worker_count: int = DEFAULT_WORKER_COUNT,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        """Initialise the dispatcher with its collaborators and bounds."""
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if max_results <= 0:
            raise ValueError("max_results must be positive")
        self._source = source
        self._enrichment = enrichment
        self._worker_count = worker_count
        self._max_results = max_results

    def run(
        self,
        query: str,
        requester_id: str | int,
        cancel: threading.Event | None = None,
    ) -> ResultStream[EnrichmentResult]:
        """List messages once and enrich them concurrently.

        Raises :class:`MailboxError` when listing fails. Zero listed messages
        yield an already closed stream.
        """
        refs = self._list(query)

        def enrich(ref: MessageRef) -> EnrichmentResult:
            message = self._source.fetch(ref)
            return self._enrichment.analyze(
                requester_id, message.subject, message.snippet, message.body
            )

        return self._fan_out(refs, enrich, cancel)

    def collect_messages(
        self, query: str, cancel: threading.Event | None = None
    ) -> ResultStream[RawMessage]:
        """List messages once and fetch them concurrently without enrichment."""
        refs = self._list(query)
        return self._fan_out(refs, self._source.fetch, cancel)

    # Internal helpers ---------------------------------------------------------
    def _list(self, query: str) -> list[MessageRef]:
        try:
            refs = self._source.list(query, self._max_results)
        except MailboxError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise MailboxError(f"Failed to list messages: {exc}") from exc
        LOGGER.info("Listed %d message(s) for query %r", len(refs), query)
        return refs

    def _fan_out(
        self,
        refs: list[MessageRef],
        handle: Callable[[MessageRef], T],
        cancel: threading.Event | None,
    ) -> ResultStream[T]:
        stream: ResultStream[T] = ResultStream(cancel)
        if not refs:
            stream.close()
            return stream

        jobs: queue.Queue[MessageRef] = queue.Queue(maxsize=len(refs))
        for ref in refs:
            jobs.put_nowait(ref)

        workers = [
            threading.Thread(
                target=self._work,
                args=(jobs, handle, stream),
                name=f"digest-worker-{index}",
                daemon=True,
            )
            for index in range(min(self._worker_count, len(refs)))
        ]
        for worker in workers:
            worker.start()

        threading.Thread(
            target=self._supervise,
            args=(workers, stream, len(refs)),
            name="digest-supervisor",
            daemon=True,
        ).start()
        return stream

    @staticmethod
    def _work(
        jobs: queue.Queue[MessageRef],
        handle: Callable[[MessageRef], T],
        stream: ResultStream[T],
    ) -> None:
        while not stream.cancelled:
            try:
                ref = jobs.get_nowait()
            except queue.Empty:
                return
            try:
                result = handle(ref)
            except (EnrichmentError, MailboxError) as exc:
                LOGGER.warning("Skipping message %s: %s", ref, exc)
                continue
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error(
                    "Unexpected error processing message %s: %s",
                    ref,
                    exc,
                    exc_info=True,
                )
                continue
            if stream.cancelled:
                LOGGER.debug("Discarding result for %s after cancellation", ref)
                return
            stream.put(result)

    @staticmethod
    def _supervise(
        workers: list[threading.Thread], stream: ResultStream[T], total: int
    ) -> None:
        for worker in workers:
            worker.join()
        LOGGER.info(
            "Worker pool finished: delivered=%s, total=%s, cancelled=%s",
            stream.delivered,
            total,
            stream.cancelled,
        )
        stream.close()


__all__ = ["ResultStream", "WorkerPoolDispatcher"]
