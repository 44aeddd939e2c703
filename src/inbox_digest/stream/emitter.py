"""Server-sent event emitter draining worker results to one client."""

from __future__ import annotations

import asyncio
import json
import logging
import queue
from collections.abc import AsyncIterator
from enum import Enum

from ..core.models import EnrichmentResult
from ..ingestion.dispatcher import ResultStream
from .bridge import StreamWakeup

LOGGER = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_SECONDS = 15.0
NO_RESULTS_ERROR = "no_emails_found"


class StreamState(str, Enum):
    """Lifecycle of a single stream session."""

    OPEN = "open"
    STREAMING = "streaming"
    CLOSED = "closed"


def format_data_event(payload: str) -> str:
    """Frame ``payload`` as an SSE data event."""
    return f"data: {payload}\n\n"


def format_comment(text: str) -> str:
    """Frame ``text`` as an SSE comment, which clients ignore."""
    return f": {text}\n\n"


HEARTBEAT_FRAME = format_comment("heartbeat")
NO_RESULTS_FRAME = format_data_event(
    json.dumps({"error": NO_RESULTS_ERROR}, separators=(",", ":"))
)


class StreamEmitter:
    """Write results to the client as they complete, with heartbeats.

    One emitter serves one session. While open it waits on whichever comes
    first: the next result, the heartbeat interval or ``cancel``. Waiting
    happens on the event loop, never in an executor thread. A cancelled
    session ends immediately without writing anything further.
    """

    def __init__(self, heartbeat_interval: float = DEFAULT_HEARTBEAT_SECONDS) -> None:
        """Create an emitter in the ``OPEN`` state."""
        if heartbeat_interval <= 0:
            raise ValueError("heartbeat_interval must be positive")
        self._heartbeat_interval = heartbeat_interval
        self.state = StreamState.OPEN
        self.found_any = False

    async def events(
        self,
        results: ResultStream[EnrichmentResult],
        cancel: asyncio.Event,
    ) -> AsyncIterator[str]:
        """Yield framed SSE events until completion or cancellation."""
        cancel_task = asyncio.ensure_future(cancel.wait())
        wake_task: asyncio.Future[None] | None = None
        try:
            with StreamWakeup(results, asyncio.get_running_loop()) as wakeup:
                while not cancel.is_set():
                    wakeup.clear()
                    try:
                        item, found = results.get_nowait()
                    except queue.Empty:
                        wake_task = asyncio.ensure_future(wakeup.wait())
                        done, _ = await asyncio.wait(
                            {wake_task, cancel_task},
                            timeout=self._heartbeat_interval,
                            return_when=asyncio.FIRST_COMPLETED,
                        )
                        wake_task.cancel()
                        wake_task = None
                        if done or cancel.is_set():
                            continue
                        yield HEARTBEAT_FRAME
                        continue

                    if not found:
                        if not self.found_any:
                            LOGGER.info("Stream finished without results")
                            yield NO_RESULTS_FRAME
                        return
                    try:
                        payload = item.to_json()  # type: ignore[union-attr]
                    except ValueError as exc:
                        LOGGER.error("Error serialising enrichment result: %s", exc)
                        continue
                    self.found_any = True
                    self.state = StreamState.STREAMING
                    yield format_data_event(payload)
                LOGGER.info("Stream cancelled by client")
        finally:
            self.state = StreamState.CLOSED
            cancel_task.cancel()
            if wake_task is not None:
                wake_task.cancel()
            results.cancel()


__all__ = [
    "DEFAULT_HEARTBEAT_SECONDS",
    "HEARTBEAT_FRAME",
    "NO_RESULTS_ERROR",
    "NO_RESULTS_FRAME",
    "StreamEmitter",
    "StreamState",
    "format_comment",
    "format_data_event",
]
