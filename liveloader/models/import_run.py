"""Import run audit model."""
from sqlalchemy import Column, Integer, String, DateTime, Float, Text, JSON
from sqlalchemy.sql import func
from liveloader.database import Base


class ImportRun(Base):
    """Append-only audit record, one row per pipeline execution.

    Never mutated once completed_at is set. The correlation id is also
    stamped on every log line of the run so logs can be traced end-to-end.
    """

    __tablename__ = "import_runs"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), nullable=False, unique=True)
    correlation_id = Column(String(36), nullable=False, index=True)
    job_id = Column(String(64), index=True)
    artist_name = Column(String(255), index=True)
    collection_id = Column(String(255))
    command_name = Column(String(100), nullable=False)
    command_args = Column(JSON)
    started_by = Column(String(100))  # cli, api, worker
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True))
    status = Column(String(20), nullable=False, index=True)
    exit_code = Column(Integer)

    # Counters
    total_items = Column(Integer, default=0)
    items_processed = Column(Integer, default=0)
    items_successful = Column(Integer, default=0)
    items_failed = Column(Integer, default=0)
    items_skipped = Column(Integer, default=0)

    # Performance
    duration_seconds = Column(Float)
    throughput_per_sec = Column(Float)
    avg_item_time_ms = Column(Float)
    memory_peak_mb = Column(Float)

    # Errors
    error_message = Column(Text)
    errors = Column(JSON)  # First 10
    error_stacktrace = Column(Text)
    log_reference = Column(String(1000))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ImportRun {self.id} {self.command_name} {self.status}>"
