"""
ImportJob lookups and status reporting.
"""

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.models import ImportJob
from src.models.enums import JobStatus, JobType


def job_status_payload(job: ImportJob) -> dict[str, Any]:
    """Serialize a job for the status endpoints."""
    return {
        "job_id": str(job.id),
        "type": job.type,
        "status": job.status,
        "progress": job.progress,
        "total_count": job.total_count,
        "processed_count": job.processed_count,
        "imported_count": job.imported_count,
        "skipped_count": job.skipped_count,
        "failed_count": job.failed_count,
        "errors": job.errors or [],
        "metadata": job.meta or {},
        "error_message": job.error_message,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        "duration_seconds": job.duration_seconds,
    }


class JobService:
    def __init__(self, db: Session):
        self.db = db

    def get(
        self, user_id: uuid.UUID, job_id: uuid.UUID, expected_type: JobType | None = None
    ) -> ImportJob:
        """
        Load a job owned by the user.

        Raises:
            NotFoundError: Job does not exist
            PermissionDeniedError: Job belongs to another user
            ValidationError: Job is of a different type than expected
        """
        job = self.db.get(ImportJob, job_id)
        if job is None:
            raise NotFoundError("Import job not found")
        if job.user_id != user_id:
            raise PermissionDeniedError("You do not have access to this job")
        if expected_type is not None and job.type != expected_type.value:
            raise ValidationError(f"Job {job_id} is not a {expected_type.value} job")
        return job

    def get_status(
        self, user_id: uuid.UUID, job_id: uuid.UUID, expected_type: JobType | None = None
    ) -> dict[str, Any]:
        return job_status_payload(self.get(user_id, job_id, expected_type))

    def list_recent(self, user_id: uuid.UUID, limit: int = 20) -> list[ImportJob]:
        return list(
            self.db.execute(
                select(ImportJob)
                .where(ImportJob.user_id == user_id)
                .order_by(ImportJob.created_at.desc())
                .limit(limit)
            ).scalars()
        )

    def find_running(self, user_id: uuid.UUID, job_type: JobType) -> ImportJob | None:
        return (
            self.db.execute(
                select(ImportJob)
                .where(
                    ImportJob.user_id == user_id,
                    ImportJob.type == job_type.value,
                    ImportJob.status.in_([JobStatus.QUEUED.value, JobStatus.PROCESSING.value]),
                )
                .order_by(ImportJob.created_at.desc())
            )
            .scalars()
            .first()
        )

    def create(self, user_id: uuid.UUID, job_type: JobType, meta: dict[str, Any] | None = None) -> ImportJob:
        job = ImportJob(
            user_id=user_id,
            type=job_type.value,
            status=JobStatus.QUEUED.value,
            errors=[],
            meta=meta or {},
        )
        self.db.add(job)
        self.db.commit()
        return job
