"""Prompt templates for LLM-driven enrichment."""

from __future__ import annotations

from textwrap import dedent

SYSTEM_PROMPT = dedent(
    """
    You are a highly specialized AI assistant for academic and recruitment analysis.
    Return ONLY a valid JSON object with these keys:
      summary, category, company, role, deadline, applyLink, otherLinks,
      eligibility, timings, salary, location, eventDetails, requirements,
      description, attachmentSummary.
    RULES:
    - summary and category: always a non-null string.
    - deadline: use YYYY-MM-DD format or null.
    - otherLinks: must be an array of strings [].
    - eligibility, timings, salary, location, eventDetails, requirements:
      a single string with "\\n• " bullet points, or null.
    - company, role, applyLink, description, attachmentSummary: a string or null.
    - If data is missing, use null (not an empty string).
    """
).strip()

TRUNCATION_MARKER = "..."


def truncate_body(body: str, max_chars: int) -> str:
    """Cap ``body`` at ``max_chars`` characters, marking any cut."""
    if len(body) > max_chars:
        return body[:max_chars] + TRUNCATION_MARKER
    return body


def build_user_prompt(subject: str, snippet: str, body: str) -> str:
    """Compose the per-message user prompt."""
    return f"Subject: {subject}\nSnippet: {snippet}\nBody: {body}"


__all__ = [
    "SYSTEM_PROMPT",
    "TRUNCATION_MARKER",
    "build_user_prompt",
    "truncate_body",
]
