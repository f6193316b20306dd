"""Import job model."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON
from sqlalchemy.sql import func
from liveloader.database import Base
import enum


class ImportJobStatus(str, enum.Enum):
    """Import job states."""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"  # Finished, but some shows or tracks failed
    FAILED = "failed"  # Collection-level failure
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {
    ImportJobStatus.COMPLETED.value,
    ImportJobStatus.PARTIAL.value,
    ImportJobStatus.FAILED.value,
    ImportJobStatus.CANCELLED.value,
}


class ImportJob(Base):
    """A requested import run and its live progress."""

    __tablename__ = "import_jobs"

    job_id = Column(String(64), primary_key=True)  # import_YYYYmmddHHMMSS_xxxxxxxx
    status = Column(String(20), default=ImportJobStatus.QUEUED.value, nullable=False, index=True)
    artist_name = Column(String(255), nullable=False, index=True)
    collection_id = Column(String(255), nullable=False)
    limit = Column(Integer)
    offset = Column(Integer)
    dry_run = Column(Boolean, default=False)

    total_shows = Column(Integer, default=0)
    processed_shows = Column(Integer, default=0)
    tracks_created = Column(Integer, default=0)
    tracks_updated = Column(Integer, default=0)
    tracks_skipped = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    errors = Column(JSON)  # First N messages only
    message = Column(String(500))

    correlation_id = Column(String(36), index=True)
    celery_task_id = Column(String(255))
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def progress(self) -> int:
        """Percent of shows processed."""
        if not self.total_shows:
            return 0
        return min(100, int((self.processed_shows or 0) * 100 / self.total_shows))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<ImportJob {self.job_id} {self.status}>"
