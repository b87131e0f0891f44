"""
Unit tests for the Gmail sync run and queueing.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from src.core.exceptions import ValidationError
from src.integrations.google.gmail_client import HistoryExpiredError
from src.models import EmailSyncConfig, ImportJob, Integration
from src.models.enums import EmailDirection, JobStatus, NotificationType
from src.services.gmail.sync import GmailSyncService

MODULE = "src.services.gmail.sync"


def make_message(message_id: str, sender: str = "ada@example.com", to: str = "me@example.com", **extra) -> dict:
    message = {
        "message_id": message_id,
        "thread_id": f"t-{message_id}",
        "from": ("", sender),
        "to": [("", to)],
        "cc": [],
        "subject": "Hello",
        "snippet": "Hi there",
        "body": "Full body text",
        "date": datetime(2026, 6, 10, 9, 0, tzinfo=timezone.utc),
    }
    message.update(extra)
    return message


@pytest.fixture
def job(user_id):
    return ImportJob(
        id=uuid.uuid4(),
        user_id=user_id,
        type="gmail_email_sync",
        status=JobStatus.QUEUED.value,
        total_count=0,
        processed_count=0,
        imported_count=0,
        skipped_count=0,
        failed_count=0,
        errors=[],
        meta={},
    )


@pytest.fixture
def integration(user_id):
    return Integration(
        id=uuid.uuid4(),
        user_id=user_id,
        type="GMAIL",
        name="Gmail",
        account_email="me@example.com",
        is_active=True,
        meta={},
    )


@pytest.fixture
def config(user_id):
    return EmailSyncConfig(
        user_id=user_id,
        gmail_enabled=True,
        sync_enabled=True,
        privacy_mode=True,
        excluded_emails=[],
        excluded_domains=[],
        sync_history_days=30,
        history_id=None,
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.get_profile.return_value = {"emailAddress": "me@example.com", "historyId": "900"}
    client.list_message_ids.return_value = (["m1", "m2", "m3"], None)
    client.fetch_message_batch.side_effect = lambda ids: [make_message(i) for i in ids]
    return client


@pytest.fixture
def service(mock_db, job, integration, config, client):
    mock_db.get.return_value = job
    service = GmailSyncService(mock_db, client_factory=lambda credentials: client)
    service._get_integration = MagicMock(return_value=integration)
    service.get_config = MagicMock(return_value=config)
    return service


@pytest.fixture
def collaborators():
    with (
        patch(f"{MODULE}.GoogleCredentialsProvider") as credentials,
        patch(f"{MODULE}.RelationshipScoreService") as scores,
        patch(f"{MODULE}.NotificationService") as notifications,
        patch(f"{MODULE}.match_contacts") as matcher,
    ):
        matcher.return_value = {}
        yield {
            "credentials": credentials,
            "scores": scores,
            "notifications": notifications,
            "matcher": matcher,
        }


class TestRunSync:
    """Test the sync run against a mocked Gmail client."""

    def test_full_sync_counts(self, service, job, collaborators, make_contact):
        ada = make_contact(email="ada@example.com")
        collaborators["matcher"].side_effect = lambda db, uid, addresses: (
            {"ada@example.com": ada} if "ada@example.com" in addresses else {}
        )

        result = service.run_sync(job.id)

        assert result["status"] == JobStatus.COMPLETED.value
        assert job.total_count == 3
        assert job.processed_count == 3
        assert job.imported_count == 3
        assert job.skipped_count == 0
        assert job.progress == 100
        collaborators["scores"].return_value.recalculate_for_contacts.assert_called_once_with([ada.id])

    def test_unmatched_messages_skipped(self, service, job, collaborators):
        result = service.run_sync(job.id)

        assert result["imported"] == 0
        assert job.skipped_count == 3
        collaborators["scores"].return_value.recalculate_for_contacts.assert_not_called()

    def test_retry_of_same_job_resets_counters(self, service, job, client, collaborators):
        """Test a rerun of a failed job reports only its own attempt."""
        collaborators["notifications"].return_value.create.side_effect = [
            RuntimeError("notification insert failed"),
            None,
            None,
        ]

        with pytest.raises(RuntimeError):
            service.run_sync(job.id)
        assert job.status == JobStatus.FAILED.value
        assert job.processed_count == 3

        client.list_message_ids.return_value = ([], None)
        service.run_sync(job.id)

        assert job.status == JobStatus.COMPLETED.value
        assert job.total_count == 0
        assert job.processed_count == 0
        assert job.skipped_count == 0
        assert job.error_message is None
        assert job.errors == []

    def test_batch_failure_recorded_and_run_continues(self, service, job, client, collaborators, mock_db):
        client.list_message_ids.return_value = ([f"m{i}" for i in range(150)], None)
        client.fetch_message_batch.side_effect = [
            RuntimeError("batch exploded"),
            [make_message(f"m{i}") for i in range(100, 150)],
        ]

        with patch(f"{MODULE}.settings") as settings:
            settings.gmail_sync_batch_size = 100
            result = service.run_sync(job.id)

        assert result["status"] == JobStatus.COMPLETED.value
        assert job.failed_count == 100
        assert job.processed_count == 150
        assert job.skipped_count == 50
        assert job.errors[0]["batch"] == 1
        assert job.errors[0]["message_ids"] == ["m0", "m1", "m2", "m3", "m4"]
        mock_db.rollback.assert_called()

    def test_expired_history_falls_back_to_full_sync(self, service, job, client, config, collaborators):
        config.history_id = "100"
        client.list_history.side_effect = HistoryExpiredError("gone", status_code=404)

        service.run_sync(job.id)

        client.list_message_ids.assert_called_once_with(query="newer_than:30d", page_token=None)
        assert config.history_id == "900"
        assert job.meta["full_sync"] is True

    def test_incremental_sync_uses_history(self, service, job, client, config, collaborators):
        config.history_id = "100"
        client.list_history.return_value = (["m9"], "950")

        service.run_sync(job.id)

        client.list_message_ids.assert_not_called()
        assert job.total_count == 1
        assert config.history_id == "950"
        assert job.meta["full_sync"] is False

    def test_privacy_mode_drops_body_and_direction(self, service, job, client, config, collaborators, make_contact, mock_db):
        """Test privacy mode writes no body and the owner's sends are OUTBOUND."""
        ada = make_contact(email="ada@example.com")
        collaborators["matcher"].return_value = {"ada@example.com": ada}
        client.list_message_ids.return_value = (["m1"], None)
        client.fetch_message_batch.side_effect = lambda ids: [
            make_message("m1", sender="me@example.com", to="ada@example.com")
        ]

        service.run_sync(job.id)

        stmt = mock_db.execute.call_args_list[-1].args[0]
        values = stmt.compile().params
        assert values["body"] is None
        assert values["direction"] == EmailDirection.OUTBOUND.value
        assert ada.last_contact == datetime(2026, 6, 10, 9, 0, tzinfo=timezone.utc)

    def test_body_kept_without_privacy_mode(self, service, job, client, config, collaborators, make_contact, mock_db):
        config.privacy_mode = False
        ada = make_contact(email="ada@example.com")
        collaborators["matcher"].return_value = {"ada@example.com": ada}
        client.list_message_ids.return_value = (["m1"], None)

        service.run_sync(job.id)

        values = mock_db.execute.call_args_list[-1].args[0].compile().params
        assert values["body"] == "Full body text"
        assert values["direction"] == EmailDirection.INBOUND.value

    def test_last_contact_not_moved_backwards(self, service, job, client, collaborators, make_contact):
        later = datetime(2026, 6, 14, tzinfo=timezone.utc)
        ada = make_contact(email="ada@example.com", last_contact=later)
        collaborators["matcher"].return_value = {"ada@example.com": ada}

        service.run_sync(job.id)

        assert ada.last_contact == later

    def test_fatal_error_fails_job_and_notifies(self, service, job, client, collaborators):
        client.get_profile.side_effect = RuntimeError("profile unavailable")

        with pytest.raises(RuntimeError):
            service.run_sync(job.id)

        assert job.status == JobStatus.FAILED.value
        assert job.error_message == "profile unavailable"
        kwargs = collaborators["notifications"].return_value.create.call_args.kwargs
        assert kwargs["title"] == "Gmail Sync Failed"
        assert kwargs["type"] == NotificationType.INTEGRATION_SYNC

    def test_missing_job(self, mock_db):
        mock_db.get.return_value = None

        with pytest.raises(ValueError):
            GmailSyncService(mock_db).run_sync(uuid.uuid4())


class TestQueueSync:
    """Test job creation and de-duplication."""

    def test_not_connected(self, mock_db, user_id):
        service = GmailSyncService(mock_db)
        service._get_integration = MagicMock(return_value=None)

        with pytest.raises(ValidationError, match="not connected"):
            service.queue_sync(user_id)

    def test_disabled(self, service, config, user_id):
        config.gmail_enabled = False

        with pytest.raises(ValidationError, match="disabled"):
            service.queue_sync(user_id)

    def test_already_queued(self, service, job, user_id):
        with (
            patch(f"{MODULE}.JobService") as jobs,
            patch(f"{MODULE}.celery_app") as celery,
        ):
            jobs.return_value.find_running.return_value = job
            result = service.queue_sync(user_id)

        assert result == {"job_id": str(job.id), "status": job.status, "already_queued": True}
        celery.send_task.assert_not_called()

    def test_enqueues_task(self, service, job, user_id, mock_db):
        with (
            patch(f"{MODULE}.JobService") as jobs,
            patch(f"{MODULE}.celery_app") as celery,
        ):
            jobs.return_value.find_running.return_value = None
            jobs.return_value.create.return_value = job
            celery.send_task.return_value.id = "task-1"
            result = service.queue_sync(user_id, full=True)

        assert result["already_queued"] is False
        celery.send_task.assert_called_once_with("gmail_sync_task", args=[str(job.id), True])
        assert job.celery_task_id == "task-1"
