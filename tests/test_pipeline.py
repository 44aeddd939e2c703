"""Tests for the batch entry points of the pipeline."""

from __future__ import annotations

import asyncio

import pytest

from inbox_digest.core.cache import TTLCache
from inbox_digest.core.config import PipelineSettings
from inbox_digest.core.interfaces import MailboxError
from inbox_digest.intelligence import FallbackEnrichmentClient, LiveEnrichmentClient
from inbox_digest.pipeline import DigestPipeline
from stubs import FakeSource, StubEnrichment


class EchoLLM:
    """Deterministic chat client echoing the subject line back as the summary."""

    def __init__(self) -> None:
        self.calls = 0

    @property
    def provider_id(self) -> str:
        return "echo"

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        subject = user_prompt.splitlines()[0].removeprefix("Subject: ")
        return '{"summary": "%s", "category": "placement"}' % subject


def test_start_sync_returns_successful_results(make_refs) -> None:
    enrichment = StubEnrichment(fail_subjects={"Subject m2"})
    pipeline = DigestPipeline(enrichment, PipelineSettings(batch_max_results=5))

    results = pipeline.start_sync("u1", FakeSource(make_refs(8)))

    assert len(results) == 4
    assert enrichment.calls == 5


def test_start_sync_uses_default_query_and_override() -> None:
    source = FakeSource([])
    pipeline = DigestPipeline(StubEnrichment(), default_query="label:placement")

    assert pipeline.start_sync("u1", source) == []
    pipeline.start_sync("u1", source, "subject:drive")

    assert [query for query, _ in source.list_calls] == ["label:placement", "subject:drive"]


def test_start_sync_propagates_listing_failure() -> None:
    source = FakeSource([], list_error=MailboxError("quota"))

    with pytest.raises(MailboxError):
        DigestPipeline(StubEnrichment()).start_sync("u1", source)


def test_repeated_cold_runs_yield_identical_required_fields(make_refs) -> None:
    refs = make_refs(6)

    def run_once() -> set[tuple[str, str]]:
        client = LiveEnrichmentClient(EchoLLM(), TTLCache())
        results = DigestPipeline(client).start_sync("u1", FakeSource(refs))
        return {(result.summary, result.category) for result in results}

    first = run_once()

    assert first == run_once()
    assert len(first) == 6


def test_shared_cache_avoids_repeat_calls_across_runs(make_refs) -> None:
    llm = EchoLLM()
    pipeline = DigestPipeline(LiveEnrichmentClient(llm, TTLCache()))

    pipeline.start_sync("u1", FakeSource(make_refs(4)))
    pipeline.start_sync("u1", FakeSource(make_refs(4)))

    assert llm.calls == 4


def test_fallback_mode_produces_sentinel_results(make_refs) -> None:
    pipeline = DigestPipeline(FallbackEnrichmentClient())

    results = pipeline.start_sync("u1", FakeSource(make_refs(3)))

    assert {(result.summary, result.category) for result in results} == {
        ("Subject m0", "misc"),
        ("Subject m1", "misc"),
        ("Subject m2", "misc"),
    }


def test_list_messages_returns_parsed_messages(make_refs) -> None:
    pipeline = DigestPipeline(StubEnrichment())

    messages = pipeline.list_messages(FakeSource(make_refs(3)))

    assert sorted(message.ref for message in messages) == ["m0", "m1", "m2"]


def test_gather_summaries_awaits_results_and_releases_source(make_refs) -> None:
    source = FakeSource(make_refs(4))
    pipeline = DigestPipeline(StubEnrichment(fail_subjects={"Subject m1"}))

    results = asyncio.run(pipeline.gather_summaries("u1", source, release=source.close))

    assert sorted(result.summary for result in results) == [
        "Subject m0 for u1",
        "Subject m2 for u1",
        "Subject m3 for u1",
    ]
    assert source.closed


def test_gather_summaries_propagates_listing_failure() -> None:
    source = FakeSource([], list_error=MailboxError("quota"))
    pipeline = DigestPipeline(StubEnrichment())

    with pytest.raises(MailboxError):
        asyncio.run(pipeline.gather_summaries("u1", source, release=source.close))

    assert source.closed


def test_gather_messages_returns_parsed_messages(make_refs) -> None:
    source = FakeSource(make_refs(3), fetch_errors={"m1"})

    messages = asyncio.run(DigestPipeline(StubEnrichment()).gather_messages(source))

    assert sorted(message.ref for message in messages) == ["m0", "m2"]
    assert not source.closed
