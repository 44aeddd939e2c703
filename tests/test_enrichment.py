"""Tests for the enrichment clients and result model."""

from __future__ import annotations

import json

import pytest

from inbox_digest.core.cache import TTLCache
from inbox_digest.core.config import AppSettings, LlmSettings
from inbox_digest.core.interfaces import EnrichmentError
from inbox_digest.core.models import EnrichmentResult
from inbox_digest.intelligence.enrichment import (
    FallbackEnrichmentClient,
    LiveEnrichmentClient,
    build_enrichment_client,
    make_cache_key,
)
from inbox_digest.intelligence.llm import LLMError


class StubLLM:
    """Stub chat client returning a predefined payload and counting calls."""

    def __init__(self, response: str | None, *, raise_error: bool = False) -> None:
        self.response = response
        self.raise_error = raise_error
        self.calls = 0
        self.prompts: list[tuple[str, str]] = []

    @property
    def provider_id(self) -> str:
        return "stub-model"

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        self.prompts.append((system_prompt, user_prompt))
        if self.raise_error:
            raise LLMError("stub failure")
        assert self.response is not None
        return self.response


VALID_OUTPUT = json.dumps(
    {
        "summary": "Acme is hiring interns",
        "category": "internship",
        "company": "Acme",
        "role": "",
        "deadline": "2025-11-01",
        "applyLink": "https://acme.example/apply",
        "otherLinks": ["https://acme.example/faq", " "],
        "eligibility": ["B.Tech 2026", "CGPA 7+"],
        "salary": None,
    }
)


def _client(llm: StubLLM, cache: TTLCache[EnrichmentResult] | None = None, **kwargs) -> LiveEnrichmentClient:
    return LiveEnrichmentClient(llm, cache if cache is not None else TTLCache(), **kwargs)


def test_live_client_parses_structured_output() -> None:
    result = _client(StubLLM(VALID_OUTPUT)).analyze(7, "Internship", "snippet", "body")

    assert result.summary == "Acme is hiring interns"
    assert result.category == "internship"
    assert result.company == "Acme"
    assert result.role is None
    assert result.deadline == "2025-11-01"
    assert result.other_links == ["https://acme.example/faq"]
    assert result.eligibility == "• B.Tech 2026\n• CGPA 7+"
    assert result.salary is None


def test_serialised_result_omits_absent_fields() -> None:
    result = _client(StubLLM(VALID_OUTPUT)).analyze(7, "Internship", "snippet", "body")

    payload = result.to_payload()

    assert payload["applyLink"] == "https://acme.example/apply"
    assert payload["otherLinks"] == ["https://acme.example/faq"]
    assert "role" not in payload
    assert "salary" not in payload
    assert json.loads(result.to_json()) == payload


def test_second_call_within_ttl_hits_cache() -> None:
    llm = StubLLM(VALID_OUTPUT)
    client = _client(llm)

    first = client.analyze("u1", "Internship", "snippet", "body one")
    second = client.analyze("u1", "Internship", "snippet", "different body")

    assert llm.calls == 1
    assert second == first


def test_different_requesters_do_not_share_cache_entries() -> None:
    llm = StubLLM(VALID_OUTPUT)
    client = _client(llm)

    client.analyze("u1", "Internship", "snippet", "body")
    client.analyze("u2", "Internship", "snippet", "body")

    assert llm.calls == 2


def test_expired_entry_triggers_new_call() -> None:
    now = [0.0]
    cache: TTLCache[EnrichmentResult] = TTLCache(clock=lambda: now[0])
    llm = StubLLM(VALID_OUTPUT)
    client = _client(llm, cache, ttl_seconds=60)

    client.analyze("u1", "Internship", "snippet", "body")
    now[0] = 61.0
    client.analyze("u1", "Internship", "snippet", "body")

    assert llm.calls == 2


def test_malformed_output_raises_and_is_not_cached() -> None:
    llm = StubLLM("not json at all")
    cache: TTLCache[EnrichmentResult] = TTLCache()
    client = _client(llm, cache)

    with pytest.raises(EnrichmentError):
        client.analyze("u1", "Subject", "snippet", "body")
    with pytest.raises(EnrichmentError):
        client.analyze("u1", "Subject", "snippet", "body")

    assert llm.calls == 2
    assert len(cache) == 0


@pytest.mark.parametrize(
    "output",
    [
        json.dumps({"category": "misc"}),
        json.dumps({"summary": "x", "category": 3}),
        json.dumps({"summary": "x", "category": "misc", "deadline": "next Friday"}),
        json.dumps({"summary": "x", "category": "misc", "otherLinks": [1, 2]}),
        json.dumps(["summary", "category"]),
    ],
)
def test_invalid_result_shapes_are_errors(output: str) -> None:
    with pytest.raises(EnrichmentError):
        _client(StubLLM(output)).analyze("u1", "Subject", "snippet", "body")


def test_numeric_detail_fields_are_kept_as_text() -> None:
    output = json.dumps(
        {
            "summary": "Stipend announced",
            "category": "internship",
            "salary": 1200000,
            "timings": [9.5, "till 17:00"],
        }
    )

    result = _client(StubLLM(output)).analyze("u1", "Subject", "snippet", "body")

    assert result.salary == "1200000"
    assert result.timings == "• 9.5\n• till 17:00"
    assert result.to_payload()["salary"] == "1200000"


def test_provider_failure_is_wrapped() -> None:
    with pytest.raises(EnrichmentError) as excinfo:
        _client(StubLLM(None, raise_error=True)).analyze("u1", "S", "s", "b")

    assert isinstance(excinfo.value.__cause__, LLMError)


def test_body_is_truncated_before_prompting() -> None:
    llm = StubLLM(VALID_OUTPUT)
    client = _client(llm, max_body_chars=10)

    client.analyze("u1", "Subject", "snippet", "x" * 50)

    system_prompt, user_prompt = llm.prompts[0]
    assert "JSON" in system_prompt
    assert user_prompt == "Subject: Subject\nSnippet: snippet\nBody: " + "x" * 10 + "..."


def test_cache_key_is_prefix_bounded() -> None:
    key = make_cache_key(42, "S" * 200, "snippet")

    assert len(key) == 100
    assert key.startswith("user:42:SSS")
    # Messages sharing a long subject prefix map to the same key.
    assert make_cache_key(42, "S" * 200, "other") == key


def test_fallback_client_echoes_subject() -> None:
    result = FallbackEnrichmentClient().analyze("u1", "Campus drive", "snip", "body")

    assert result.summary == "Campus drive"
    assert result.category == "misc"
    assert result.to_payload() == {"summary": "Campus drive", "category": "misc"}


def test_builder_selects_fallback_without_credential() -> None:
    client = build_enrichment_client(AppSettings(), TTLCache())

    assert isinstance(client, FallbackEnrichmentClient)


def test_builder_selects_live_client_with_credential() -> None:
    settings = AppSettings(llm=LlmSettings(api_key="sk-test"))

    client = build_enrichment_client(settings, TTLCache(), llm_client=StubLLM(VALID_OUTPUT))

    assert isinstance(client, LiveEnrichmentClient)
