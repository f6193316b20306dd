"""Activity log model."""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from liveloader.database import Base


class ActivityLog(Base):
    """Audit log of destructive catalog operations."""

    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    actor = Column(String(100))  # cli, api, worker
    action = Column(String(50), nullable=False, index=True)  # delete_entry, cleanup_entries, cancel_job
    entity_type = Column(String(50))  # entry, job
    entity_id = Column(String(255))
    details = Column(JSON)  # Additional context (use JSON for SQLite compat)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Activity {self.action} by {self.actor}>"
