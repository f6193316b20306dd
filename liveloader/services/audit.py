"""Append-only audit trail of import runs."""
import logging
import resource
import sys
import time
import traceback
import tracemalloc
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from liveloader.logging_config import log_file_reference
from liveloader.models.import_run import ImportRun

logger = logging.getLogger(__name__)

# Errors kept on the run record
MAX_RUN_ERRORS = 10


class AuditError(Exception):
    """Attempt to modify a completed run."""
    pass


def peak_memory_mb() -> float:
    """Peak memory of this process in MB.

    Uses tracemalloc when it is tracing, otherwise the max RSS from
    getrusage (bytes on macOS, kilobytes on Linux).
    """
    if tracemalloc.is_tracing():
        return tracemalloc.get_traced_memory()[1] / (1024 * 1024)

    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform == "darwin":
        return rss / (1024 * 1024)
    return rss / 1024


class ImportRunRecorder:
    """Writes one ImportRun per pipeline execution."""

    def __init__(self, db: Session):
        self.db = db
        self._clocks: dict[int, float] = {}

    def start(
        self,
        command_name: str,
        args: Optional[dict] = None,
        artist_name: Optional[str] = None,
        collection_id: Optional[str] = None,
        job_id: Optional[str] = None,
        started_by: str = "cli",
        correlation_id: Optional[str] = None,
    ) -> ImportRun:
        run = ImportRun(
            uuid=str(uuid.uuid4()),
            correlation_id=correlation_id or str(uuid.uuid4()),
            job_id=job_id,
            artist_name=artist_name,
            collection_id=collection_id,
            command_name=command_name,
            command_args=args or {},
            started_by=started_by,
            started_at=datetime.now(timezone.utc),
            status="running",
            log_reference=log_file_reference(),
        )
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        self._clocks[run.id] = time.monotonic()

        logger.info(f"[{run.correlation_id}] Started {command_name} run {run.uuid}")
        return run

    def finish(
        self,
        run: ImportRun,
        result: Optional[dict],
        status: str,
        exit_code: int = 0,
        error: Optional[BaseException] = None,
    ) -> ImportRun:
        """Close a run with counters and performance figures.

        Args:
            result: ImportResult.to_dict(), or None if the run never produced one

        Raises:
            AuditError: The run was already completed
        """
        if run.completed_at is not None:
            raise AuditError(f"Import run {run.uuid} is already completed and cannot be modified.")

        result = result or {}
        started = self._clocks.pop(run.id, None)
        if started is not None:
            duration = time.monotonic() - started
        else:
            started_at = run.started_at
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=timezone.utc)
            duration = (datetime.now(timezone.utc) - started_at).total_seconds()

        created = result.get("tracks_created", 0)
        updated = result.get("tracks_updated", 0)
        skipped = result.get("tracks_skipped", 0)
        processed = created + updated + skipped
        errors = list(result.get("errors", []))

        run.completed_at = datetime.now(timezone.utc)
        run.status = status
        run.exit_code = exit_code
        run.total_items = processed
        run.items_processed = processed
        run.items_successful = created + updated
        run.items_failed = result.get("error_count", len(errors))
        run.items_skipped = skipped
        run.duration_seconds = round(duration, 3)
        run.throughput_per_sec = round(processed / duration, 3) if duration > 0 else None
        run.avg_item_time_ms = round(duration * 1000 / processed, 3) if processed else None
        run.memory_peak_mb = round(peak_memory_mb(), 2)
        run.errors = errors[:MAX_RUN_ERRORS]

        if error is not None:
            run.error_message = str(error)[:2000]
            run.error_stacktrace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        elif errors:
            run.error_message = errors[0].get("message")

        self.db.add(run)
        self.db.commit()

        logger.info(
            f"[{run.correlation_id}] Finished {run.command_name} run {run.uuid}: "
            f"{status} in {run.duration_seconds}s ({processed} items)"
        )
        return run

    def recent_runs(
        self,
        limit: int = 20,
        artist_name: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[ImportRun]:
        query = self.db.query(ImportRun)
        if artist_name:
            query = query.filter(ImportRun.artist_name == artist_name)
        if status:
            query = query.filter(ImportRun.status == status)
        return query.order_by(ImportRun.started_at.desc(), ImportRun.id.desc()).limit(limit).all()
