"""Transport adapters for external mailbox providers."""

from .gmail_client import GmailClient, GmailError

__all__ = ["GmailClient", "GmailError"]
