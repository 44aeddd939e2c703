"""Ingestion pipeline components."""

from .dispatcher import ResultStream, WorkerPoolDispatcher
from .parser import GmailMessageParser, clean_text, extract_plain_text
from .source import MessageSource

__all__ = [
    "GmailMessageParser",
    "MessageSource",
    "ResultStream",
    "WorkerPoolDispatcher",
    "clean_text",
    "extract_plain_text",
]
