"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

MessageRef = str
"""Provider-assigned opaque identifier of one mailbox message."""

FALLBACK_CATEGORY = "misc"
BULLET_PREFIX = "• "


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class RawMessage:
    """Fetched and parsed content of one mailbox message."""

    ref: MessageRef
    subject: str
    sender: str
    date: str
    body: str
    snippet: str


class EnrichmentResult(BaseModel):
    """Structured summary produced for a single message.

    ``summary`` and ``category`` are always present. Every other field is
    either a meaningful value or ``None``; empty strings and empty lists are
    normalised to ``None`` and omitted when serialised.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    summary: str
    category: str
    company: str | None = None
    role: str | None = None
    deadline: str | None = None
    apply_link: str | None = None
    description: str | None = None
    attachment_summary: str | None = None
    other_links: list[str] | None = None
    eligibility: str | None = None
    timings: str | None = None
    salary: str | None = None
    location: str | None = None
    event_details: str | None = None
    requirements: str | None = None

    @field_validator(
        "company",
        "role",
        "deadline",
        "apply_link",
        "description",
        "attachment_summary",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator(
        "eligibility",
        "timings",
        "salary",
        "location",
        "event_details",
        "requirements",
        mode="before",
    )
    @classmethod
    def _join_bullets(cls, value: Any) -> Any:
        if _is_number(value):
            return str(value)
        if isinstance(value, list):
            value = [str(item) if _is_number(item) else item for item in value]
            if any(not isinstance(item, str) for item in value):
                raise ValueError("bullet lists must contain only strings or numbers")
            items = [item.strip() for item in value if item.strip()]
            if not items:
                return None
            return "\n".join(
                item if item.startswith(BULLET_PREFIX.strip()) else BULLET_PREFIX + item
                for item in items
            )
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("other_links", mode="before")
    @classmethod
    def _clean_links(cls, value: Any) -> Any:
        if isinstance(value, list):
            if any(not isinstance(item, str) for item in value):
                raise ValueError("otherLinks must contain only strings")
            links = [item.strip() for item in value if item.strip()]
            return links or None
        return value

    @field_validator("deadline")
    @classmethod
    def _check_deadline(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            return date.fromisoformat(value).isoformat()
        except ValueError as exc:
            raise ValueError("deadline must be an ISO date (YYYY-MM-DD)") from exc

    @classmethod
    def fallback(cls, subject: str) -> EnrichmentResult:
        """Return the degraded result used when no provider is configured."""
        return cls(summary=subject, category=FALLBACK_CATEGORY)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready mapping with camelCase keys and no absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """Serialise to a compact JSON document."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


__all__ = [
    "BULLET_PREFIX",
    "EnrichmentResult",
    "FALLBACK_CATEGORY",
    "MessageRef",
    "RawMessage",
]
