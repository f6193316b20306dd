"""Celery worker configuration.

Run worker: celery -A liveloader.worker worker -l info -Q imports,maintenance
Run beat: celery -A liveloader.worker beat -l info
"""
from celery import Celery
from celery.schedules import crontab

from liveloader.config import settings
from liveloader.logging_config import setup_logging

setup_logging()

celery_app = Celery(
    "liveloader",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "liveloader.tasks.imports",
        "liveloader.tasks.maintenance"
    ]
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "liveloader.tasks.imports.*": {"queue": "imports"},
        "liveloader.tasks.maintenance.*": {"queue": "maintenance"},
    },

    # Task execution settings
    task_acks_late=True,  # Acknowledge after task completes
    task_reject_on_worker_lost=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # One task at a time per worker
    worker_concurrency=4,  # Per-artist locks serialize same-artist imports

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Beat schedule - periodic tasks
    beat_schedule={
        # Clear stale locks every hour
        "cleanup-stale-locks": {
            "task": "liveloader.tasks.maintenance.cleanup_stale_locks",
            "schedule": crontab(minute=15),
            "options": {"queue": "maintenance"}
        },

        # Remove finished jobs past retention daily at 3 AM
        "cleanup-old-jobs": {
            "task": "liveloader.tasks.maintenance.cleanup_old_jobs",
            "schedule": crontab(hour=3, minute=0),
            "options": {"queue": "maintenance"}
        },
    }
)
