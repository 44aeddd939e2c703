"""LLM-powered enrichment services."""

from inbox_digest.core.interfaces import EnrichmentError

from .enrichment import (
    FallbackEnrichmentClient,
    LiveEnrichmentClient,
    build_enrichment_client,
    make_cache_key,
)
from .llm import ChatCompletionClient, LLMError, OpenAIChatClient

__all__ = [
    "ChatCompletionClient",
    "EnrichmentError",
    "FallbackEnrichmentClient",
    "LLMError",
    "LiveEnrichmentClient",
    "OpenAIChatClient",
    "build_enrichment_client",
    "make_cache_key",
]
