"""Fetch mailbox messages, summarise them with an LLM, and stream the results."""

from .pipeline import DigestPipeline

__all__ = ["DigestPipeline"]
