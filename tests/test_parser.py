"""Tests for Gmail message parsing into raw messages."""

from __future__ import annotations

import base64

from inbox_digest.ingestion.parser import (
    MAX_BODY_CHARS,
    TRUNCATION_MARKER,
    GmailMessageParser,
    clean_text,
    decode_body_data,
    extract_plain_text,
    first_header,
)


def _encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _nested_resource() -> dict:
    return {
        "id": "m1",
        "snippet": "Campus drive next week",
        "payload": {
            "mimeType": "multipart/mixed",
            "headers": [
                {"name": "From", "value": "Placement Office <office@example.edu>"},
                {"name": "Subject", "value": "Campus drive"},
                {"name": "Subject", "value": "Duplicate subject"},
                {"name": "Date", "value": "Mon, 6 Oct 2025 09:00:00 +0530"},
            ],
            "body": {"size": 0},
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "body": {"size": 0},
                    "parts": [
                        {
                            "mimeType": "text/html",
                            "body": {"data": _encode("<p>HTML version</p>")},
                        },
                        {
                            "mimeType": "text/plain",
                            "body": {"data": _encode("  Register\n\n by   Friday.  ")},
                        },
                    ],
                },
                {
                    "mimeType": "text/plain",
                    "body": {"data": _encode("Second plain part")},
                },
            ],
        },
    }


def test_nested_plain_leaf_is_found_depth_first() -> None:
    resource = _nested_resource()

    assert extract_plain_text(resource["payload"]) == "Register by Friday."


def test_parser_builds_raw_message() -> None:
    message = GmailMessageParser().parse("m1", _nested_resource())

    assert message.ref == "m1"
    assert message.subject == "Campus drive"
    assert message.sender == "Placement Office <office@example.edu>"
    assert message.date == "Mon, 6 Oct 2025 09:00:00 +0530"
    assert message.body == "Register by Friday."
    assert message.snippet == "Campus drive next week"


def test_missing_headers_and_plain_text_yield_empty_strings() -> None:
    resource = {
        "payload": {
            "mimeType": "multipart/alternative",
            "parts": [{"mimeType": "text/html", "body": {"data": _encode("<b>x</b>")}}],
        }
    }

    message = GmailMessageParser().parse("m2", resource)

    assert message.subject == ""
    assert message.sender == ""
    assert message.body == ""
    assert message.snippet == ""


def test_empty_plain_part_falls_through_to_children() -> None:
    part = {
        "mimeType": "multipart/related",
        "parts": [
            {"mimeType": "text/plain", "body": {"size": 0}},
            {"mimeType": "text/plain", "body": {"data": _encode("actual text")}},
        ],
    }

    assert extract_plain_text(part) == "actual text"


def test_clean_text_collapses_whitespace() -> None:
    assert clean_text("Hello    World  \n  Test") == "Hello World Test"


def test_clean_text_truncates_long_text() -> None:
    result = clean_text("a" * 3000)

    assert result.endswith(TRUNCATION_MARKER)
    assert len(result) == MAX_BODY_CHARS + len(TRUNCATION_MARKER)


def test_decode_body_data_handles_missing_padding_and_urlsafe_chars() -> None:
    text = "subjects?>>~ ünïcode"

    assert decode_body_data(_encode(text)) == text


def test_first_header_matches_exact_name() -> None:
    headers = [{"name": "subject", "value": "lower"}, {"name": "Subject", "value": "Exact"}]

    assert first_header(headers, "Subject") == "Exact"
    assert first_header(headers, "From") == ""
