"""LLM client abstractions used by enrichment."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from inbox_digest.core.config import LlmSettings

LOGGER = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class ChatCompletionClient(Protocol):
    """Protocol describing the minimal chat-completion behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw JSON text produced for the two prompts."""
        raise NotImplementedError


@dataclass(slots=True)
class OpenAIChatClient:
    """Thin synchronous client for an OpenAI-compatible chat completions API."""

    settings: LlmSettings
    http_client: httpx.Client | None = None
    _client: httpx.Client = field(init=False, repr=False)
    _owns_client: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate the credential and create an HTTP client when none is given."""
        if not self.settings.api_key:
            raise ValueError("OpenAIChatClient requires an API key")
        if self.http_client is None:
            self._client = httpx.Client(timeout=self.settings.timeout_seconds)
            self._owns_client = True
        else:
            self._client = self.http_client

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one JSON-mode completion request and return the message content."""
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.settings.temperature,
            "response_format": {"type": "json_object"},
        }
        try:
            response = self._client.post(
                _resolve_endpoint(self.settings.base_url),
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise LLMError(
                f"LLM request failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network dependent
            raise LLMError(f"LLM request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise LLMError("LLM returned invalid JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError("LLM response missing 'choices[0].message.content'") from exc
        if not isinstance(content, str):
            raise LLMError("LLM response content is not text")
        return content

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"openai:{self.settings.model}"

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()


def _resolve_endpoint(base_url: str) -> str:
    return base_url.rstrip("/") + "/chat/completions"


__all__ = ["ChatCompletionClient", "LLMError", "OpenAIChatClient"]
