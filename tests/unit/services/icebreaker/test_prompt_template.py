"""
Unit tests for icebreaker prompt building and variation cleanup.
"""

from datetime import datetime, timedelta, timezone

from src.services.icebreaker.prompt_template import (
    NOT_SPECIFIED,
    generate_user_prompt,
    normalize_variations,
    relationship_summary,
)


class TestRelationshipSummary:
    def test_full_history(self):
        now = datetime(2026, 6, 15, tzinfo=timezone.utc)
        summary = relationship_summary(85, now - timedelta(days=12), "Q3 planning", now=now)

        assert summary == "High importance contact. Last contacted 12 days ago. Last email: Q3 planning"

    def test_tiers(self):
        assert relationship_summary(60, None).startswith("Medium importance")
        assert relationship_summary(10, None).startswith("Low importance")

    def test_no_history(self):
        assert relationship_summary(0, None) == "No previous interaction history"


class TestGenerateUserPrompt:
    """Test prompt assembly."""

    def test_includes_context(self):
        prompt = generate_user_prompt(
            contact_name="Ada Lovelace",
            channel="email",
            tone="friendly",
            word_limit=120,
            user_name="Sam Rivera",
            current_title="Engineer",
            current_company="Analytical Engines",
            mutual_connections=["Charles Babbage"],
        )

        assert "Name: Ada Lovelace" in prompt
        assert "Current Role: Engineer at Analytical Engines" in prompt
        assert "Mutual Connections: Charles Babbage" in prompt
        assert "Your Name: Sam Rivera" in prompt
        assert "under 120 words" in prompt

    def test_missing_fields_marked(self):
        prompt = generate_user_prompt(
            contact_name="Ada", channel="linkedin", tone="casual", word_limit=50, user_name="Sam"
        )

        assert f"Trigger Event: {NOT_SPECIFIED}" in prompt
        assert f"Mutual Connections: {NOT_SPECIFIED}" in prompt


class TestNormalizeVariations:
    """Test variation cleanup per channel."""

    def test_email_keeps_subject(self):
        raw = [{"subject": "Hello", "body": " Hi Ada ", "talkingPoints": ["engines"], "reasoning": "warm"}]

        assert normalize_variations(raw, "email") == [
            {"body": "Hi Ada", "talking_points": ["engines"], "reasoning": "warm", "subject": "Hello"}
        ]

    def test_subject_dropped_outside_email(self):
        raw = [{"subject": "Hello", "body": "Hi"}]

        variation = normalize_variations(raw, "whatsapp")[0]

        assert "subject" not in variation
        assert variation["talking_points"] == []
        assert variation["reasoning"] == ""

    def test_linkedin_body_trimmed(self):
        variation = normalize_variations([{"body": "x" * 400}], "linkedin")[0]

        assert len(variation["body"]) == 300
        assert variation["body"].endswith("...")
