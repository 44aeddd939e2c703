"""Gmail REST transport adapter providing mailbox access."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any

import httpx

from ..core.config import GmailSettings
from ..core.interfaces import MailboxError, MailboxProvider

LOGGER = logging.getLogger(__name__)


class GmailError(MailboxError):
    """Wrap low level Gmail API errors with additional context."""


class GmailClient(MailboxProvider):
    """Thin wrapper around the Gmail ``users.messages`` endpoints.

    The access token is issued elsewhere; this client only attaches it.
    ``httpx.Client`` is safe to share between worker threads.
    """

    def __init__(
        self,
        settings: GmailSettings,
        access_token: str,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialise the client with configuration and a bearer token."""
        if not access_token:
            raise GmailError("Gmail access token is not configured")
        self._settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            timeout=settings.timeout_seconds
        )
        self._headers = {"Authorization": f"Bearer {access_token}"}

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> GmailClient:
        """Return self; the HTTP client connects lazily."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure resources are released on context exit."""
        self.close()

    # Public API ---------------------------------------------------------------
    def list_message_ids(self, query: str, max_results: int) -> list[str]:
        """Return identifiers of messages matching ``query``."""
        LOGGER.debug("Listing up to %s messages for query %r", max_results, query)
        data = self._get("/messages", params={"q": query, "maxResults": max_results})
        messages = data.get("messages") or []
        ids = [entry["id"] for entry in messages if isinstance(entry, dict) and "id" in entry]
        LOGGER.debug("Gmail returned %d message id(s)", len(ids))
        return ids

    def fetch_message(
        self, message_id: str, message_format: str = "full"
    ) -> Mapping[str, Any]:
        """Return the Gmail ``Message`` resource for ``message_id``."""
        LOGGER.debug("Fetching message %s (format=%s)", message_id, message_format)
        return self._get(f"/messages/{message_id}", params={"format": message_format})

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    # Internal helpers ---------------------------------------------------------
    def _get(self, path: str, *, params: Mapping[str, Any]) -> dict[str, Any]:
        url = self._settings.base_url.rstrip("/") + path
        try:
            response = self._client.get(
                url,
                params=dict(params),
                headers=self._headers,
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise GmailError(
                f"Gmail request {path} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network dependent
            raise GmailError(f"Gmail request {path} failed: {exc}") from exc
        except ValueError as exc:
            raise GmailError(f"Gmail returned invalid JSON for {path}") from exc
        if not isinstance(payload, dict):
            raise GmailError(f"Unexpected Gmail payload for {path}")
        return payload


__all__ = ["GmailClient", "GmailError"]
