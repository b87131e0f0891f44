"""
Unit tests for note and import-job ownership rules.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.models import ImportJob, Note
from src.models.enums import JobStatus, JobType
from src.services.jobs import JobService, job_status_payload
from src.services.notes import NoteService


class TestNoteService:
    """Test note access rules."""

    def test_missing_note(self, mock_db, user_id):
        mock_db.get.return_value = None
        with pytest.raises(NotFoundError, match="Note not found"):
            NoteService(mock_db).update(user_id, uuid.uuid4(), content="x")

    def test_foreign_note_forbidden(self, mock_db, user_id, other_user_id):
        """Test another user's note raises 403, not 404."""
        mock_db.get.return_value = Note(id=uuid.uuid4(), user_id=other_user_id, content="hi")
        with pytest.raises(PermissionDeniedError):
            NoteService(mock_db).delete(user_id, uuid.uuid4())
        mock_db.delete.assert_not_called()

    def test_create_requires_content(self, mock_db, user_id, make_contact):
        mock_db.get.return_value = make_contact()
        with pytest.raises(ValidationError):
            NoteService(mock_db).create(user_id, uuid.uuid4(), "   ")

    def test_toggle_pin(self, mock_db, user_id):
        note = Note(id=uuid.uuid4(), user_id=user_id, content="hi", is_pinned=False)
        mock_db.get.return_value = note

        NoteService(mock_db).toggle_pin(user_id, note.id)
        assert note.is_pinned is True
        NoteService(mock_db).toggle_pin(user_id, note.id)
        assert note.is_pinned is False


@pytest.fixture
def job(user_id):
    started = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
    return ImportJob(
        id=uuid.uuid4(),
        user_id=user_id,
        type=JobType.GOOGLE_CONTACTS.value,
        status=JobStatus.COMPLETED.value,
        total_count=8,
        processed_count=6,
        imported_count=5,
        skipped_count=1,
        failed_count=0,
        errors=[],
        meta={"options": {}},
        created_at=started,
        started_at=started,
        completed_at=started + timedelta(seconds=42),
    )


class TestJobService:
    """Test job lookup and serialization."""

    def test_payload(self, job):
        payload = job_status_payload(job)

        assert payload["job_id"] == str(job.id)
        assert payload["progress"] == 75
        assert payload["duration_seconds"] == 42
        assert payload["metadata"] == {"options": {}}
        assert payload["completed_at"] == "2026-06-15T12:00:42+00:00"

    def test_progress_without_total(self, job):
        job.total_count = 0
        assert job_status_payload(job)["progress"] == 0

    def test_reset_counters(self, job):
        job.record_error({"error": "old"})
        job.reset_counters()

        assert (job.total_count, job.processed_count, job.imported_count) == (0, 0, 0)
        assert (job.skipped_count, job.failed_count) == (0, 0)
        assert job.errors == []
        assert job.progress == 0

    def test_missing(self, mock_db, user_id):
        mock_db.get.return_value = None
        with pytest.raises(NotFoundError):
            JobService(mock_db).get(user_id, uuid.uuid4())

    def test_foreign(self, mock_db, job, other_user_id):
        mock_db.get.return_value = job
        with pytest.raises(PermissionDeniedError):
            JobService(mock_db).get(other_user_id, job.id)

    def test_type_mismatch(self, mock_db, job, user_id):
        """Test asking for a gmail job with a contacts job id is rejected."""
        mock_db.get.return_value = job
        with pytest.raises(ValidationError):
            JobService(mock_db).get(user_id, job.id, expected_type=JobType.GMAIL_EMAIL_SYNC)

    def test_create_queued(self, mock_db, user_id):
        job = JobService(mock_db).create(user_id, JobType.GOOGLE_CALENDAR_SYNC)

        assert job.status == JobStatus.QUEUED.value
        assert job.type == "google_calendar_sync"
        mock_db.commit.assert_called_once()
