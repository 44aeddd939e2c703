"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class GmailSettings(BaseModel):
    """Settings controlling access to the Gmail REST API."""

    base_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1/users/me",
        description="Gmail API root for the authenticated user",
    )
    timeout_seconds: float = Field(
        default=15.0, gt=0, description="Request timeout for mailbox calls"
    )
    default_query: str = Field(
        default="in:inbox",
        description="Search expression used when the caller supplies none",
    )


class LlmSettings(BaseModel):
    """Settings for the hosted chat-completion provider."""

    api_key: str | None = Field(
        default=None, description="Provider credential; unset enables fallback mode"
    )
    base_url: str = Field(
        default="https://api.openai.com/v1", description="Provider API root"
    )
    model: str = Field(default="gpt-4o-mini", description="Model identifier")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for completions",
    )
    max_body_chars: int = Field(
        default=4000,
        ge=1,
        description="Email body characters sent to the provider",
    )


class CacheSettings(BaseModel):
    """Settings for the enrichment result cache."""

    ttl_seconds: float = Field(
        default=3600.0, gt=0, description="Lifetime of a cached enrichment"
    )
    sweep_interval_seconds: float = Field(
        default=600.0, gt=0, description="Interval between expiry sweeps"
    )
    key_max_length: int = Field(
        default=100, ge=1, description="Maximum cache key length"
    )


class PipelineSettings(BaseModel):
    """Settings controlling fan-out and streaming behaviour."""

    worker_count: int = Field(
        default=5, ge=1, description="Concurrent fetch-and-summarise workers"
    )
    max_results: int = Field(
        default=10, ge=1, description="Messages listed per streaming request"
    )
    batch_max_results: int = Field(
        default=20, ge=1, description="Messages listed per batch request"
    )
    heartbeat_seconds: float = Field(
        default=15.0, gt=0, description="Interval between stream heartbeats"
    )
    stream_deadline_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional hard cap on the lifetime of one stream",
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Emit key=value structured log lines"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    gmail: GmailSettings = Field(default_factory=GmailSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_PREFIX = "INBOX_DIGEST_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "CacheSettings",
    "GmailSettings",
    "LlmSettings",
    "LoggingSettings",
    "PipelineSettings",
    "load_app_settings",
]
