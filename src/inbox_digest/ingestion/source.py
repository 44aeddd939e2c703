"""Message source adapter over a mailbox transport."""

from __future__ import annotations

import logging

from ..core.interfaces import MailboxProvider, MessageSourceProtocol
from ..core.models import MessageRef, RawMessage
from .parser import GmailMessageParser

LOGGER = logging.getLogger(__name__)


class MessageSource(MessageSourceProtocol):
    """List candidate messages and fetch them as parsed :class:`RawMessage`."""

    def __init__(
        self,
        mailbox: MailboxProvider,
        parser: GmailMessageParser | None = None,
    ) -> None:
        """Wrap ``mailbox`` with the parser used for fetched resources."""
        self._mailbox = mailbox
        self._parser = parser or GmailMessageParser()

    def list(self, query: str, max_results: int) -> list[MessageRef]:
        """Return up to ``max_results`` identifiers matching ``query``."""
        if max_results <= 0:
            raise ValueError("max_results must be positive")
        refs = self._mailbox.list_message_ids(query, max_results)
        return list(refs[:max_results])

    def fetch(self, ref: MessageRef) -> RawMessage:
        """Fetch the full message for ``ref`` and parse it."""
        resource = self._mailbox.fetch_message(ref, "full")
        message = self._parser.parse(ref, resource)
        LOGGER.debug("Fetched message %s (subject %r)", ref, message.subject)
        return message

    def close(self) -> None:
        """Release the underlying transport."""
        self._mailbox.close()


__all__ = ["MessageSource"]
