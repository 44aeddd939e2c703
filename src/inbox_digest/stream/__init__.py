"""Streaming delivery of enrichment results."""

from .bridge import StreamWakeup, iterate_results
from .emitter import NO_RESULTS_FRAME, StreamEmitter, StreamState

__all__ = [
    "NO_RESULTS_FRAME",
    "StreamEmitter",
    "StreamState",
    "StreamWakeup",
    "iterate_results",
]
