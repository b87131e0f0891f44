"""
Unit tests for relationship strength scoring.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from src.services.contacts.relationship_score import (
    InteractionStats,
    RelationshipScoreService,
    bidirectionality_score,
    calculate_score,
    engagement_score,
    frequency_score,
    investment_score,
    recency_score,
    relationship_label,
)


class TestComponentScores:
    """Test the individual score components."""

    @pytest.mark.parametrize(
        "days,expected",
        [(0, 40), (7, 40), (8, 30), (30, 30), (90, 20), (180, 10), (181, 0)],
    )
    def test_recency(self, now, days, expected):
        """Test recency thresholds."""
        assert recency_score(now - timedelta(days=days), now) == expected

    def test_recency_never_contacted(self, now):
        """Test no last contact scores zero."""
        assert recency_score(None, now) == 0

    @pytest.mark.parametrize("count,expected", [(0, 0), (1, 10), (3, 15), (5, 20), (10, 25), (40, 25)])
    def test_frequency(self, count, expected):
        """Test frequency thresholds."""
        assert frequency_score(count) == expected

    @pytest.mark.parametrize(
        "inbound,total,expected",
        [(0, 0, 0), (6, 10, 15), (5, 10, 10), (1, 4, 10), (1, 10, 5), (0, 10, 0)],
    )
    def test_bidirectionality(self, inbound, total, expected):
        """Test inbound share thresholds (strictly above 50% for the top band)."""
        assert bidirectionality_score(inbound, total) == expected

    def test_engagement_prefers_meetings(self):
        """Test meetings or calls beat email-only engagement."""
        assert engagement_score(1, 0) == 10
        assert engagement_score(0, 3) == 5
        assert engagement_score(0, 0) == 0

    def test_investment(self):
        """Test reminders and notes each add 5."""
        assert investment_score(1, 1) == 10
        assert investment_score(0, 2) == 5
        assert investment_score(0, 0) == 0


class TestCalculateScore:
    """Test the combined score."""

    def test_full_score_capped_at_100(self, now):
        """Test a maximally engaged contact reaches exactly 100."""
        stats = InteractionStats(
            email_count=12,
            inbound_email_count=8,
            activity_count=2,
            meeting_or_call_count=2,
            pending_reminders=1,
            notes_count=3,
        )
        breakdown = calculate_score(now - timedelta(days=1), stats, now)

        assert breakdown.total == 100
        assert breakdown.to_dict() == {
            "recency": 40,
            "frequency": 25,
            "bidirectionality": 15,
            "engagement": 10,
            "investment": 10,
            "total": 100,
        }

    def test_new_contact_scores_zero(self, now):
        """Test a contact with no history scores zero."""
        assert calculate_score(None, InteractionStats(), now).total == 0


class TestRelationshipLabel:
    """Test badge thresholds."""

    @pytest.mark.parametrize(
        "score,label",
        [(100, "strong"), (80, "strong"), (79, "moderate"), (50, "moderate"), (20, "weak"), (19, "new")],
    )
    def test_labels(self, score, label):
        """Test label boundaries."""
        assert relationship_label(score) == label


class TestRelationshipScoreService:
    """Test persistence of scores."""

    def test_update_score_missing_contact(self, mock_db):
        """Test a missing contact returns None without writing."""
        mock_db.get.return_value = None

        assert RelationshipScoreService(mock_db).update_score(uuid.uuid4()) is None
        mock_db.commit.assert_not_called()

    def test_update_score_writes_importance(self, mock_db, make_contact):
        """Test the computed total is stored on the contact."""
        contact = make_contact(importance=0, last_contact=datetime.now(timezone.utc) - timedelta(days=2))
        mock_db.get.return_value = contact
        service = RelationshipScoreService(mock_db)

        with patch.object(service, "gather_stats", return_value=InteractionStats(email_count=1)):
            score = service.update_score(contact.id)

        # recency 40 + frequency 10 + engagement 5
        assert score == 55
        assert contact.importance == 55
        mock_db.commit.assert_called_once()

    def test_label_change_records_insight(self, mock_db, make_contact):
        """Test crossing a label threshold adds a RELATIONSHIP_STRENGTH insight."""
        contact = make_contact(importance=10, last_contact=datetime.now(timezone.utc) - timedelta(days=2))
        mock_db.get.return_value = contact
        service = RelationshipScoreService(mock_db)

        with patch.object(service, "gather_stats", return_value=InteractionStats(email_count=1)):
            service.update_score(contact.id)

        insight = mock_db.add.call_args[0][0]
        assert insight.type == "RELATIONSHIP_STRENGTH"
        assert insight.contact_id == contact.id
        assert insight.meta["previous_label"] == "new"
        assert insight.meta["label"] == "moderate"

    def test_recalculate_all_continues_after_failure(self, mock_db, user_id):
        """Test per-contact failures are counted and the batch continues."""
        ids = [uuid.uuid4() for _ in range(3)]
        mock_db.execute.return_value.scalars.return_value = ids
        service = RelationshipScoreService(mock_db)

        with patch.object(service, "update_score", side_effect=[10, RuntimeError("boom"), 20]):
            result = service.recalculate_all_for_user(user_id)

        assert result == {"processed": 2, "failed": 1}
        assert mock_db.begin_nested.call_count == 3
