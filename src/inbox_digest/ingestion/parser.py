"""Utilities for parsing Gmail ``Message`` resources into structured models."""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.models import RawMessage

MAX_BODY_CHARS = 2000
TRUNCATION_MARKER = "... [truncated]"

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str, *, max_chars: int = MAX_BODY_CHARS) -> str:
    """Collapse whitespace runs, trim, and cap the result at ``max_chars``."""
    cleaned = _WHITESPACE.sub(" ", text).strip()
    if len(cleaned) > max_chars:
        return cleaned[:max_chars] + TRUNCATION_MARKER
    return cleaned


def decode_body_data(data: str) -> str:
    """Decode Gmail's URL-safe base64 body data, tolerating missing padding."""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return ""
    return raw.decode("utf-8", errors="replace")


def extract_plain_text(part: Mapping[str, Any]) -> str:
    """Return the cleaned text of the first non-empty ``text/plain`` leaf.

    Parts are visited depth-first in document order. A ``text/plain`` part
    with body data is decoded and returned directly; otherwise each child is
    searched in turn.
    """
    body = part.get("body") or {}
    data = body.get("data") if isinstance(body, Mapping) else None
    if part.get("mimeType") == "text/plain" and data:
        return clean_text(decode_body_data(data))

    for child in part.get("parts") or ():
        result = extract_plain_text(child)
        if result:
            return result
    return ""


def first_header(headers: Iterable[Mapping[str, Any]], name: str) -> str:
    """Return the value of the first header literally named ``name``."""
    for header in headers:
        if header.get("name") == name:
            value = header.get("value")
            return value if isinstance(value, str) else ""
    return ""


class GmailMessageParser:
    """Convert Gmail ``format=full`` resources into :class:`RawMessage`."""

    def parse(self, ref: str, resource: Mapping[str, Any]) -> RawMessage:
        """Parse one message resource fetched for ``ref``."""
        payload = resource.get("payload") or {}
        headers = payload.get("headers") or ()
        snippet = resource.get("snippet")
        return RawMessage(
            ref=ref,
            subject=first_header(headers, "Subject"),
            sender=first_header(headers, "From"),
            date=first_header(headers, "Date"),
            body=extract_plain_text(payload),
            snippet=snippet if isinstance(snippet, str) else "",
        )


__all__ = [
    "GmailMessageParser",
    "MAX_BODY_CHARS",
    "TRUNCATION_MARKER",
    "clean_text",
    "decode_body_data",
    "extract_plain_text",
    "first_header",
]
