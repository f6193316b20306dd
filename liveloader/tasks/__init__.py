"""Celery background tasks."""
from liveloader.tasks.imports import run_import_job
from liveloader.tasks.maintenance import cleanup_stale_locks, cleanup_old_jobs

__all__ = [
    "run_import_job",
    "cleanup_stale_locks",
    "cleanup_old_jobs",
]
