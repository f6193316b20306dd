"""Import tasks for Celery."""
import logging
from typing import Optional

from celery import shared_task

from liveloader.database import SessionLocal

logger = logging.getLogger(__name__)


@shared_task(name="liveloader.tasks.imports.run_import_job")
def run_import_job(job_id: str, started_by: str = "worker", writer: Optional[str] = None):
    """Run a queued import job to completion.

    Not retried: a failed job is recorded as failed and can be re-queued.

    Args:
        job_id: ImportJob id created by start_import
        started_by: Surface that queued the job (api, cli)
        writer: "orm" or "bulk", None for settings.import_writer
    """
    from liveloader.services.import_management import ImportManagementService
    from liveloader.services.job_status import JobNotFoundError, JobStateError

    db = SessionLocal()
    service = ImportManagementService(db)
    try:
        job = service.execute_job(job_id, started_by=started_by, writer=writer)
        logger.info(f"Import job {job_id} finished: {job.status}")
        return {
            "job_id": job.job_id,
            "status": job.status,
            "tracks_created": job.tracks_created,
            "tracks_updated": job.tracks_updated,
            "error_count": job.error_count,
        }
    except (JobNotFoundError, JobStateError) as e:
        logger.error(f"Import job {job_id} not run: {e}")
        return {"job_id": job_id, "status": "error", "error": str(e)}
    finally:
        service.close()
        db.close()
