"""Import job state persistence."""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from liveloader.config import settings
from liveloader.models.import_job import ImportJob, ImportJobStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

# status -> statuses it may move to
TRANSITIONS = {
    # queued -> failed covers lock contention and enqueue failures
    ImportJobStatus.QUEUED.value: {
        ImportJobStatus.RUNNING.value,
        ImportJobStatus.CANCELLED.value,
        ImportJobStatus.FAILED.value,
    },
    ImportJobStatus.RUNNING.value: set(TERMINAL_STATUSES),
}


class JobNotFoundError(Exception):
    """No import job with the given id."""
    pass


class JobStateError(Exception):
    """Requested job transition is not allowed from the current status."""
    pass


def generate_job_id() -> str:
    """import_YYYYmmddHHMMSS_<8 hex>."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"import_{stamp}_{uuid.uuid4().hex[:8]}"


class JobStatusManager:
    """Creates, reads and transitions import jobs."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        artist_name: str,
        collection_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: bool = False,
        correlation_id: Optional[str] = None,
    ) -> ImportJob:
        job = ImportJob(
            job_id=generate_job_id(),
            status=ImportJobStatus.QUEUED.value,
            artist_name=artist_name,
            collection_id=collection_id,
            limit=limit,
            offset=offset,
            dry_run=dry_run,
            correlation_id=correlation_id or str(uuid.uuid4()),
            message="Queued",
            errors=[],
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info(f"Created import job {job.job_id} for {artist_name} ({collection_id})")
        return job

    def get(self, job_id: str) -> ImportJob:
        """Raises JobNotFoundError for an unknown id."""
        job = self.db.get(ImportJob, job_id)
        if job is None:
            raise JobNotFoundError(f'Import job with ID "{job_id}" does not exist.')
        return job

    def save(self, job: ImportJob) -> ImportJob:
        self.db.add(job)
        self.db.commit()
        return job

    def transition(self, job: ImportJob, status: str, message: Optional[str] = None) -> ImportJob:
        """Move a job to a new status, stamping start/completion times.

        Raises:
            JobStateError: Transition not allowed
        """
        allowed = TRANSITIONS.get(job.status, set())
        if status not in allowed:
            raise JobStateError(
                f'Cannot move job "{job.job_id}" from "{job.status}" to "{status}".'
            )

        now = datetime.now(timezone.utc)
        job.status = status
        if status == ImportJobStatus.RUNNING.value:
            job.started_at = now
        if status in TERMINAL_STATUSES:
            job.completed_at = now
        if message is not None:
            job.message = message[:500]

        logger.info(f"Job {job.job_id} -> {status}")
        return self.save(job)

    def update_progress(self, job: ImportJob, total: int, current: int, message: str) -> ImportJob:
        job.total_shows = total
        job.processed_shows = current
        job.message = message[:500]
        return self.save(job)

    def record_result(self, job: ImportJob, result: dict) -> None:
        """Copy final counters from an ImportResult.to_dict() onto the job."""
        job.processed_shows = result.get("shows_processed", 0)
        job.tracks_created = result.get("tracks_created", 0)
        job.tracks_updated = result.get("tracks_updated", 0)
        job.tracks_skipped = result.get("tracks_skipped", 0)
        job.error_count = result.get("error_count", 0)
        job.errors = list(result.get("errors", []))[:settings.job_error_limit]

    def list_jobs(self, status: Optional[str] = None, limit: int = 50) -> list[ImportJob]:
        query = self.db.query(ImportJob)
        if status:
            query = query.filter(ImportJob.status == status)
        return query.order_by(ImportJob.created_at.desc(), ImportJob.job_id.desc()).limit(limit).all()

    def delete(self, job_id: str) -> bool:
        job = self.db.get(ImportJob, job_id)
        if job is None:
            return False
        self.db.delete(job)
        self.db.commit()
        return True

    def is_cancelled(self, job_id: str) -> bool:
        """Re-read the status so a cancel from another process is seen."""
        job = (
            self.db.query(ImportJob)
            .filter(ImportJob.job_id == job_id)
            .populate_existing()
            .first()
        )
        return job is not None and job.status == ImportJobStatus.CANCELLED.value

    def cleanup_old_jobs(self, older_than_days: Optional[int] = None) -> int:
        """Delete terminal jobs created more than N days ago.

        Returns:
            Number of jobs deleted
        """
        days = older_than_days if older_than_days is not None else settings.job_retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        result = self.db.execute(
            delete(ImportJob).where(
                ImportJob.status.in_(TERMINAL_STATUSES),
                ImportJob.created_at < cutoff,
            ).execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        logger.info(f"Removed {result.rowcount} import jobs older than {days} days")
        return result.rowcount
