"""Batch and streaming entry points of the fetch-and-summarise pipeline."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any, TypeVar

from .core.config import PipelineSettings
from .core.interfaces import EnrichmentService, MailboxError, MessageSourceProtocol
from .core.models import EnrichmentResult, RawMessage
from .ingestion.dispatcher import ResultStream, WorkerPoolDispatcher
from .stream.bridge import iterate_results
from .stream.emitter import StreamEmitter

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Release = Callable[[], object]


class DigestPipeline:
    """Run the worker pool for one requester in batch or streaming mode.

    The asynchronous entry points only use an executor thread for the
    listing call. Results are awaited on the event loop, so concurrent
    sessions do not compete for the loop's default executor.
    """

    def __init__(
        self,
        enrichment: EnrichmentService,
        settings: PipelineSettings | None = None,
        *,
        default_query: str = "in:inbox",
    ) -> None:
        """Bind the shared enrichment client and pipeline limits."""
        self._enrichment = enrichment
        self._settings = settings or PipelineSettings()
        self._default_query = default_query

    def start_sync(
        self,
        requester_id: str | int,
        source: MessageSourceProtocol,
        query: str | None = None,
    ) -> list[EnrichmentResult]:
        """Enrich a batch of messages and return every successful result.

        Raises :class:`MailboxError` when the mailbox cannot be listed.
        """
        dispatcher = self._dispatcher(source, self._settings.batch_max_results)
        results = list(dispatcher.run(query or self._default_query, requester_id))
        LOGGER.info("Batch digest for %s produced %d result(s)", requester_id, len(results))
        return results

    def list_messages(
        self, source: MessageSourceProtocol, query: str | None = None
    ) -> list[RawMessage]:
        """Fetch and parse a batch of messages without enrichment."""
        dispatcher = self._dispatcher(source, self._settings.batch_max_results)
        return list(dispatcher.collect_messages(query or self._default_query))

    async def gather_summaries(
        self,
        requester_id: str | int,
        source: MessageSourceProtocol,
        query: str | None = None,
        *,
        release: Release | None = None,
    ) -> list[EnrichmentResult]:
        """Event-loop counterpart of :meth:`start_sync`.

        ``release`` runs once every worker has exited, also when the caller
        is cancelled part way.
        """
        dispatcher = self._dispatcher(source, self._settings.batch_max_results)
        worker_cancel = threading.Event()
        results = await self._gather(
            dispatcher.run,
            (query or self._default_query, requester_id, worker_cancel),
            worker_cancel,
            release,
        )
        LOGGER.info("Batch digest for %s produced %d result(s)", requester_id, len(results))
        return results

    async def gather_messages(
        self,
        source: MessageSourceProtocol,
        query: str | None = None,
        *,
        release: Release | None = None,
    ) -> list[RawMessage]:
        """Event-loop counterpart of :meth:`list_messages`."""
        dispatcher = self._dispatcher(source, self._settings.batch_max_results)
        worker_cancel = threading.Event()
        return await self._gather(
            dispatcher.collect_messages,
            (query or self._default_query, worker_cancel),
            worker_cancel,
            release,
        )

    async def start_stream(
        self,
        requester_id: str | int,
        source: MessageSourceProtocol,
        cancel: asyncio.Event,
        query: str | None = None,
        *,
        release: Release | None = None,
    ) -> AsyncIterator[str]:
        """Yield SSE frames for one client session until done or cancelled.

        A listing failure is reported to the client the same way as an empty
        mailbox. ``release`` runs once every worker has exited, even when the
        session ends early.
        """
        worker_cancel = threading.Event()
        dispatcher = self._dispatcher(source, self._settings.max_results)
        results: ResultStream[EnrichmentResult] | None = None
        deadline: asyncio.TimerHandle | None = None
        try:
            try:
                results = await asyncio.to_thread(
                    dispatcher.run, query or self._default_query, requester_id, worker_cancel
                )
            except MailboxError as exc:
                LOGGER.warning("Listing failed for %s: %s", requester_id, exc)
                results = ResultStream(worker_cancel)
                results.close()

            if self._settings.stream_deadline_seconds is not None:
                deadline = asyncio.get_running_loop().call_later(
                    self._settings.stream_deadline_seconds, cancel.set
                )

            emitter = StreamEmitter(heartbeat_interval=self._settings.heartbeat_seconds)
            async with aclosing(emitter.events(results, cancel)) as frames:
                async for frame in frames:
                    yield frame
        finally:
            if deadline is not None:
                deadline.cancel()
            _finish(results, worker_cancel, release)

    async def _gather(
        self,
        start: Callable[..., ResultStream[T]],
        args: tuple[Any, ...],
        worker_cancel: threading.Event,
        release: Release | None,
    ) -> list[T]:
        results: ResultStream[T] | None = None
        try:
            results = await asyncio.to_thread(start, *args)
            async with aclosing(iterate_results(results)) as items:
                return [item async for item in items]
        finally:
            _finish(results, worker_cancel, release)

    def _dispatcher(
        self, source: MessageSourceProtocol, max_results: int
    ) -> WorkerPoolDispatcher:
        return WorkerPoolDispatcher(
            source,
            self._enrichment,
            worker_count=self._settings.worker_count,
            max_results=max_results,
        )


def _finish(
    results: ResultStream[Any] | None,
    worker_cancel: threading.Event,
    release: Release | None,
) -> None:
    """Stop unfinished workers and schedule ``release`` after they exit."""
    if results is None:
        # Listing failed or was interrupted, so no worker was started.
        worker_cancel.set()
        if release is not None:
            release()
        return
    if not results.closed:
        results.cancel()
    if release is not None:
        results.add_done_callback(release)


__all__ = ["DigestPipeline"]
