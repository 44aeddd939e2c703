"""Enrichment clients turning one message into an :class:`EnrichmentResult`."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from inbox_digest.core.cache import TTLCache
from inbox_digest.core.config import AppSettings
from inbox_digest.core.interfaces import EnrichmentError, EnrichmentService
from inbox_digest.core.models import EnrichmentResult

from .llm import ChatCompletionClient, LLMError, OpenAIChatClient
from .prompts import SYSTEM_PROMPT, build_user_prompt, truncate_body

LOGGER = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 3600.0
DEFAULT_KEY_MAX_LENGTH = 100
DEFAULT_MAX_BODY_CHARS = 4000


def make_cache_key(
    requester_id: str | int,
    subject: str,
    snippet: str,
    *,
    max_length: int = DEFAULT_KEY_MAX_LENGTH,
) -> str:
    """Derive the cache key for a requester and message preview.

    The key is a plain prefix, so two messages whose ``user:subject:snippet``
    strings agree on the first ``max_length`` characters share an entry.
    """
    # TODO: hash the full preview once cached entries can be invalidated.
    key = f"user:{requester_id}:{subject}:{snippet}"
    return key[:max_length]


class LiveEnrichmentClient(EnrichmentService):
    """Summarise messages through a chat-completion provider, caching results."""

    def __init__(
        self,
        llm_client: ChatCompletionClient,
        cache: TTLCache[EnrichmentResult],
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        key_max_length: int = DEFAULT_KEY_MAX_LENGTH,
        max_body_chars: int = DEFAULT_MAX_BODY_CHARS,
    ) -> None:
        """Prepare the client with its provider, shared cache, and limits."""
        self._llm_client = llm_client
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._key_max_length = key_max_length
        self._max_body_chars = max_body_chars

    def analyze(
        self, requester_id: str | int, subject: str, snippet: str, body: str
    ) -> EnrichmentResult:
        """Return the cached or freshly generated enrichment for one message."""
        cache_key = make_cache_key(
            requester_id, subject, snippet, max_length=self._key_max_length
        )
        cached, found = self._cache.get(cache_key)
        if found and cached is not None:
            return cached

        user_prompt = build_user_prompt(
            subject, snippet, truncate_body(body, self._max_body_chars)
        )
        try:
            raw_output = self._llm_client.complete(SYSTEM_PROMPT, user_prompt)
        except LLMError as exc:
            raise EnrichmentError(f"Enrichment call failed: {exc}") from exc

        try:
            result = EnrichmentResult.model_validate_json(raw_output)
        except ValidationError as exc:
            LOGGER.warning(
                "Malformed enrichment output from %s: %s",
                self._llm_client.provider_id,
                raw_output[:200],
            )
            raise EnrichmentError("Enrichment output was not a valid result") from exc

        self._cache.set(cache_key, result, self._ttl_seconds)
        return result


class FallbackEnrichmentClient(EnrichmentService):
    """Degraded client used when no provider credential is configured."""

    def analyze(
        self, requester_id: str | int, subject: str, snippet: str, body: str
    ) -> EnrichmentResult:
        """Echo the subject as the summary under the fallback category."""
        return EnrichmentResult.fallback(subject)


def build_enrichment_client(
    settings: AppSettings,
    cache: TTLCache[EnrichmentResult],
    *,
    llm_client: ChatCompletionClient | None = None,
) -> EnrichmentService:
    """Select the live or fallback client from the configured credential."""
    if llm_client is None:
        if not settings.llm.api_key:
            LOGGER.warning("No LLM API key configured; enrichment runs in fallback mode")
            return FallbackEnrichmentClient()
        llm_client = OpenAIChatClient(settings.llm)
    return LiveEnrichmentClient(
        llm_client,
        cache,
        ttl_seconds=settings.cache.ttl_seconds,
        key_max_length=settings.cache.key_max_length,
        max_body_chars=settings.llm.max_body_chars,
    )


__all__ = [
    "FallbackEnrichmentClient",
    "LiveEnrichmentClient",
    "build_enrichment_client",
    "make_cache_key",
]
