"""Maintenance tasks for Celery."""
import logging
from celery import shared_task

from liveloader.database import SessionLocal

logger = logging.getLogger(__name__)


@shared_task(name="liveloader.tasks.maintenance.cleanup_stale_locks")
def cleanup_stale_locks(max_age_hours: int = None):
    """Remove lock files left behind by dead or long-running processes."""
    from liveloader.services.lock import LockService

    removed = LockService().cleanup_stale_locks(max_age_hours)
    logger.info(f"Removed {removed} stale locks")
    return {"removed": removed}


@shared_task(name="liveloader.tasks.maintenance.cleanup_old_jobs")
def cleanup_old_jobs(older_than_days: int = None):
    """Remove finished import jobs past the retention window.

    Only completed, partial, failed or cancelled jobs are deleted.
    """
    from liveloader.services.job_status import JobStatusManager

    db = SessionLocal()

    try:
        deleted = JobStatusManager(db).cleanup_old_jobs(older_than_days)
        return {"deleted": deleted}
    except Exception as e:
        db.rollback()
        logger.error(f"Job cleanup failed: {e}")
        raise
    finally:
        db.close()
