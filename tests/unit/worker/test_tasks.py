"""
Unit tests for Celery tasks: each opens a session, delegates and closes it.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest

from src.worker.celery_app import celery_app
from src.worker.tasks import (
    calendar_sync_task,
    gmail_sync_task,
    google_contacts_import_task,
    recalculate_relationship_scores_task,
    schedule_calendar_syncs,
    send_due_reminder_notifications_task,
)


@pytest.fixture
def session():
    with patch("src.worker.tasks.SyncSessionLocal") as mock_factory:
        db = MagicMock()
        mock_factory.return_value = db
        yield db


class TestSyncTasks:
    """Test job-running tasks."""

    def test_gmail_sync(self, session):
        job_id = uuid.uuid4()
        with patch("src.worker.tasks.GmailSyncService") as mock_service:
            mock_service.return_value.run_sync.return_value = {"messages_processed": 12}

            result = gmail_sync_task(str(job_id), full=True)

        assert result == {"messages_processed": 12}
        args, kwargs = mock_service.return_value.run_sync.call_args
        assert args == (job_id,)
        assert kwargs["full"] is True
        assert kwargs["correlation_id"]
        assert callable(kwargs["on_progress"])
        session.close.assert_called_once()

    def test_contacts_import_passes_options(self, session):
        job_id = uuid.uuid4()
        with patch("src.worker.tasks.GoogleContactsService") as mock_service:
            google_contacts_import_task(str(job_id), {"skip_duplicates": False, "tag_mapping": {"a": "b"}})

        args, _ = mock_service.return_value.run_import_job.call_args
        assert args[0] == job_id
        assert args[1].skip_duplicates is False
        assert args[1].tag_mapping == {"a": "b"}
        session.close.assert_called_once()

    def test_session_closed_on_failure(self, session):
        with patch("src.worker.tasks.CalendarSyncService") as mock_service:
            mock_service.return_value.run_sync_job.side_effect = RuntimeError("boom")

            with pytest.raises(RuntimeError):
                calendar_sync_task(str(uuid.uuid4()))

        session.close.assert_called_once()


class TestPeriodicTasks:
    """Test beat-scheduled tasks."""

    def test_schedule_calendar_syncs_isolates_failures(self, session):
        users = [uuid.uuid4(), uuid.uuid4(), uuid.uuid4()]
        with patch("src.worker.tasks.CalendarSyncService") as mock_service:
            service = mock_service.return_value
            service.users_with_calendar.return_value = users
            service.queue_sync.side_effect = [MagicMock(), RuntimeError("redis down"), MagicMock()]

            result = schedule_calendar_syncs()

        assert result == {"queued": 2, "failed": 1}
        session.rollback.assert_called_once()

    def test_reminder_notifications(self, session):
        with patch("src.worker.tasks.ReminderService") as mock_service:
            mock_service.return_value.send_due_notifications.return_value = {"sent": 3, "failed": 0}

            assert send_due_reminder_notifications_task() == {"sent": 3, "failed": 0}

    def test_recalculate_scores_totals(self, session):
        session.execute.return_value.scalars.return_value.all.return_value = [uuid.uuid4(), uuid.uuid4()]
        with patch("src.worker.tasks.RelationshipScoreService") as mock_service:
            mock_service.return_value.recalculate_all_for_user.side_effect = [
                {"processed": 10, "failed": 1},
                {"processed": 5, "failed": 0},
            ]

            result = recalculate_relationship_scores_task()

        assert result == {"users": 2, "processed": 15, "failed": 1}


class TestBeatSchedule:
    def test_periodic_tasks_registered(self):
        scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}

        assert scheduled == {
            "send_due_reminder_notifications_task",
            "schedule_calendar_syncs",
            "recalculate_relationship_scores_task",
        }
