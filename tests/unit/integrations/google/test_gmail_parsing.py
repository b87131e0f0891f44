"""
Unit tests for Gmail message parsing.
"""

import base64
from datetime import datetime, timezone

from src.integrations.google.gmail_client import MAX_BODY_LENGTH, extract_body, parse_message


def encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def make_message(headers: dict[str, str], payload_extra: dict | None = None, **fields) -> dict:
    payload = {"headers": [{"name": k, "value": v} for k, v in headers.items()]}
    payload.update(payload_extra or {})
    return {"id": "msg1", "threadId": "thread1", "snippet": "Hi there", "payload": payload, **fields}


class TestParseMessage:
    """Test header and address extraction."""

    def test_headers(self):
        message = make_message(
            {
                "From": "Ada Lovelace <Ada@Example.com>",
                "To": "me@example.com, Bob <bob@example.com>",
                "Cc": "carol@example.com",
                "Subject": "Engines",
                "Date": "Mon, 15 Jun 2026 09:30:00 +0000",
            }
        )

        parsed = parse_message(message)

        assert parsed["message_id"] == "msg1"
        assert parsed["thread_id"] == "thread1"
        assert parsed["subject"] == "Engines"
        assert parsed["from"] == ("Ada Lovelace", "Ada@Example.com")
        assert parsed["to"] == [("", "me@example.com"), ("Bob", "bob@example.com")]
        assert parsed["cc"] == [("", "carol@example.com")]
        assert parsed["date"] == datetime(2026, 6, 15, 9, 30, tzinfo=timezone.utc)

    def test_header_names_case_insensitive(self):
        parsed = parse_message(make_message({"subject": "lower", "FROM": "x@example.com"}))

        assert parsed["subject"] == "lower"
        assert parsed["from"] == ("", "x@example.com")
        assert parsed["to"] == []

    def test_falls_back_to_internal_date(self):
        """Test an unparseable Date header uses internalDate (ms since epoch)."""
        message = make_message({"Date": "not a date"}, internalDate="1781515800000")

        parsed = parse_message(message)

        assert parsed["date"] == datetime.fromtimestamp(1781515800, tz=timezone.utc)


class TestExtractBody:
    """Test body extraction from MIME payloads."""

    def test_single_part(self):
        payload = {"mimeType": "text/plain", "body": {"data": encode("Hello Ada")}}
        assert extract_body(payload) == "Hello Ada"

    def test_multipart_prefers_plain_text(self):
        payload = {
            "mimeType": "multipart/alternative",
            "parts": [
                {"mimeType": "text/html", "body": {"data": encode("<p>Hi</p>")}},
                {"mimeType": "text/plain", "body": {"data": encode("Hi")}},
            ],
        }
        assert extract_body(payload) == "Hi"

    def test_nested_parts(self):
        payload = {
            "mimeType": "multipart/mixed",
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [{"mimeType": "text/plain", "body": {"data": encode("Deep")}}],
                }
            ],
        }
        assert extract_body(payload) == "Deep"

    def test_html_only(self):
        payload = {
            "mimeType": "multipart/alternative",
            "parts": [{"mimeType": "text/html", "body": {"data": encode("<p>Hi</p>")}}],
        }
        assert extract_body(payload) is None

    def test_truncated(self):
        payload = {"mimeType": "text/plain", "body": {"data": encode("x" * (MAX_BODY_LENGTH + 50))}}
        assert len(extract_body(payload)) == MAX_BODY_LENGTH
