"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from .models import EnrichmentResult, MessageRef, RawMessage


class MailboxError(RuntimeError):
    """Raised when the mailbox cannot list or fetch messages."""


class EnrichmentError(RuntimeError):
    """Raised when enriching a single message fails."""


class MailboxProvider(Protocol):
    """Transport capability over a remote mailbox such as Gmail."""

    def list_message_ids(self, query: str, max_results: int) -> list[str]:
        """Return identifiers of messages matching ``query``, newest first."""
        raise NotImplementedError

    def fetch_message(
        self, message_id: str, message_format: str = "full"
    ) -> Mapping[str, Any]:
        """Return the provider representation of one message."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any network resources."""
        raise NotImplementedError


class MessageSourceProtocol(Protocol):
    """Lists candidate messages and fetches them as :class:`RawMessage`."""

    def list(self, query: str, max_results: int) -> list[MessageRef]:
        """Return candidate identifiers in provider order."""
        raise NotImplementedError

    def fetch(self, ref: MessageRef) -> RawMessage:
        """Fetch and parse one message."""
        raise NotImplementedError


class EnrichmentService(Protocol):
    """Produces structured summaries for messages."""

    def analyze(
        self, requester_id: str | int, subject: str, snippet: str, body: str
    ) -> EnrichmentResult:
        """Return an :class:`EnrichmentResult` or raise :class:`EnrichmentError`."""
        raise NotImplementedError


__all__ = [
    "EnrichmentError",
    "EnrichmentService",
    "MailboxError",
    "MailboxProvider",
    "MessageSourceProtocol",
]
