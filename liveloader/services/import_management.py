"""Operational surface: start, track and cancel imports; prune the catalog.

Used by the HTTP API, the CLI and the Celery worker alike.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from liveloader.config import settings
from liveloader.integrations.archive import ArchiveClient, ArchiveSource
from liveloader.models.artist_status import ArtistStatus
from liveloader.models.attribute_option import AttributeOption
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.classification import EntryNodeLink
from liveloader.models.import_job import ImportJob, ImportJobStatus
from liveloader.models.import_run import ImportRun
from liveloader.models.indexer import IndexerMode
from liveloader.models.unmatched_track import UnmatchedTrack
from liveloader.services.activity import ActivityService
from liveloader.services.artist_catalog import ArtistCatalogLoader
from liveloader.services.artist_status import ArtistStatusService
from liveloader.services.attribute_options import ARCHIVE_COLLECTION, AttributeOptionManager
from liveloader.services.audit import ImportRunRecorder
from liveloader.services.bulk_importer import BulkTrackImporter
from liveloader.services.classification import CategoryAssignmentService
from liveloader.services.indexer import IndexerService
from liveloader.services.job_status import JobStateError, JobStatusManager
from liveloader.services.lock import LockError, LockService
from liveloader.services.show_importer import (
    CollectionImportError,
    ImportResult,
    ProgressCallback,
    ShowImporter,
)
from liveloader.services.track_importer import TrackImporter
from liveloader.services.track_matcher import TrackMatcher
from liveloader.services.unmatched import UnmatchedTrackRecorder

logger = logging.getLogger(__name__)

COLLECTION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
IMPORT_LOCK = "import"
DEFAULT_CLEANUP_BATCH = 100
MAX_CLEANUP_BATCH = 1000
PREVIEW_LIMIT = 50


class ValidationError(Exception):
    """Invalid input, rejected before any I/O."""
    pass


class EntryNotFoundError(Exception):
    """No catalog entry with the given SKU."""
    pass


class EntryDeleteError(Exception):
    """Entry exists but may not be deleted."""
    pass


def final_status(result: ImportResult) -> str:
    """Terminal job status for a run that did not fail outright."""
    if result.cancelled:
        return ImportJobStatus.CANCELLED.value
    if result.has_errors:
        return ImportJobStatus.PARTIAL.value
    return ImportJobStatus.COMPLETED.value


class ImportManagementService:
    """Entry point for import jobs and catalog maintenance."""

    def __init__(
        self,
        db: Session,
        archive: Optional[ArchiveSource] = None,
        lock_service: Optional[LockService] = None,
        catalog_loader: Optional[ArtistCatalogLoader] = None,
        artist_mappings: Optional[list[dict]] = None,
    ):
        self.db = db
        self._archive = archive
        self.locks = lock_service or LockService()
        self.catalog_loader = catalog_loader or ArtistCatalogLoader()
        self.artist_mappings = artist_mappings if artist_mappings is not None else settings.artist_mappings
        self.jobs = JobStatusManager(db)
        self.audit = ImportRunRecorder(db)
        self.activity = ActivityService(db)

    @property
    def archive(self) -> ArchiveSource:
        if self._archive is None:
            self._archive = ArchiveClient()
        return self._archive

    def close(self) -> None:
        """Close the archive client if one was opened."""
        if self._archive is not None and hasattr(self._archive, "close"):
            self._archive.close()

    # Jobs

    def start_import(
        self,
        artist_name: str,
        collection_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        dry_run: bool = False,
        run_async: bool = True,
        started_by: str = "api",
        writer: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ImportJob:
        """Validate, create a queued job and run it in a worker or inline.

        Raises:
            ValidationError: Bad arguments; nothing is created
        """
        artist_name = (artist_name or "").strip()
        collection_id = (collection_id or "").strip()
        self.validate_import_args(artist_name, collection_id, limit, offset)

        job = self.jobs.create(artist_name, collection_id, limit, offset, dry_run)

        if not run_async:
            return self.execute_job(
                job.job_id, started_by=started_by, writer=writer, progress_callback=progress_callback
            )

        from liveloader.tasks.imports import run_import_job

        try:
            task = run_import_job.delay(job.job_id, started_by, writer)
        except Exception as e:
            logger.error(f"Failed to enqueue import job {job.job_id}: {e}")
            job.error_count = 1
            job.errors = [{"message": f"Failed to enqueue: {e}", "context": None}]
            self.jobs.transition(job, ImportJobStatus.FAILED.value, f"Failed to enqueue: {e}")
            return job

        job.celery_task_id = task.id
        return self.jobs.save(job)

    @staticmethod
    def validate_import_args(
        artist_name: str,
        collection_id: str,
        limit: Optional[int],
        offset: Optional[int],
    ) -> None:
        if not artist_name:
            raise ValidationError("Artist name cannot be empty.")
        if not collection_id:
            raise ValidationError("Collection ID cannot be empty.")
        if not COLLECTION_ID_PATTERN.match(collection_id):
            raise ValidationError(
                f'Invalid collection ID "{collection_id}". '
                "Only letters, numbers, underscores and hyphens are allowed."
            )
        if limit is not None and limit <= 0:
            raise ValidationError("Limit must be a positive number.")
        if offset is not None and offset < 0:
            raise ValidationError("Offset cannot be negative.")

    def execute_job(
        self,
        job_id: str,
        started_by: str = "worker",
        writer: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ImportJob:
        """Run a queued job to a terminal status under the artist's import lock.

        Args:
            writer: "orm" or "bulk", defaults to settings.import_writer
            progress_callback: Called after the job's own progress update
        """
        job = self.jobs.get(job_id)
        if job.status == ImportJobStatus.CANCELLED.value:
            logger.info(f"Job {job_id} was cancelled before it started")
            return job
        if job.status != ImportJobStatus.QUEUED.value:
            raise JobStateError(f'Job "{job_id}" cannot be started - status is "{job.status}".')

        try:
            token = self.locks.acquire(IMPORT_LOCK, job.artist_name)
        except LockError as e:
            logger.warning(f"Job {job_id} not started: {e}")
            job.error_count = 1
            job.errors = [{"message": str(e), "context": job.artist_name}]
            return self.jobs.transition(job, ImportJobStatus.FAILED.value, str(e))

        run = None
        result: Optional[ImportResult] = None
        error: Optional[BaseException] = None
        try:
            self.jobs.transition(job, ImportJobStatus.RUNNING.value, "Running")
            run = self.audit.start(
                command_name="dry-run" if job.dry_run else "import",
                args={
                    "artist": job.artist_name,
                    "collection": job.collection_id,
                    "limit": job.limit,
                    "offset": job.offset,
                    "dry_run": job.dry_run,
                },
                artist_name=job.artist_name,
                collection_id=job.collection_id,
                job_id=job.job_id,
                started_by=started_by,
                correlation_id=job.correlation_id,
            )
            result = self._run(job, writer, progress_callback)
            status = final_status(result)
        except CollectionImportError as e:
            self.db.rollback()
            error = e
            status = ImportJobStatus.FAILED.value
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Import job {job_id} crashed: {e}")
            error = e
            status = ImportJobStatus.FAILED.value
        finally:
            try:
                self.locks.release(token)
            except LockError as e:
                logger.warning(f"Job {job_id} lost its import lock: {e}")

        job = self._finish(job, run, result, status, error)
        if not job.dry_run:
            self._refresh_artist_status(job.artist_name, job.collection_id, job)
        return job

    def import_show(
        self,
        identifier: str,
        artist_name: str,
        started_by: str = "cli",
        writer: Optional[str] = None,
    ) -> ImportResult:
        """Import one show outside the job table, under the same lock and audit.

        Raises:
            ValidationError: Empty identifier or artist
            LockError: Another import for this artist is running
        """
        identifier = (identifier or "").strip()
        artist_name = (artist_name or "").strip()
        if not identifier:
            raise ValidationError("Show identifier cannot be empty.")
        if not artist_name:
            raise ValidationError("Artist name cannot be empty.")

        with self.locks.hold(IMPORT_LOCK, artist_name):
            run = self.audit.start(
                command_name="import-show",
                args={"identifier": identifier, "artist": artist_name},
                artist_name=artist_name,
                started_by=started_by,
            )
            try:
                result = self.build_importer(writer).import_show(identifier, artist_name)
            except Exception as e:
                self.db.rollback()
                self.audit.finish(run, None, ImportJobStatus.FAILED.value, 1, e)
                raise

            status = final_status(result)
            exit_code = 0 if status == ImportJobStatus.COMPLETED.value else 1
            self.audit.finish(run, result.to_dict(), status, exit_code)

        self._refresh_artist_status(artist_name, self.collection_for(artist_name))
        return result

    def collection_for(self, artist_name: str) -> Optional[str]:
        """Collection id mapped to an artist name (case-insensitive)."""
        wanted = (artist_name or "").strip().lower()
        for mapping in self.artist_mappings:
            if (mapping.get("artist_name") or "").lower() == wanted and mapping.get("collection_id"):
                return mapping["collection_id"]
        return None

    def get_job_status(self, job_id: str) -> ImportJob:
        job = self.jobs.get(job_id)
        self.db.refresh(job)
        return job

    def list_jobs(self, status: Optional[str] = None, limit: int = 50) -> list[ImportJob]:
        return self.jobs.list_jobs(status, limit)

    def cancel_job(self, job_id: str, actor: str = "api") -> bool:
        """Request cancellation; a running job stops before its next show.

        Raises:
            JobNotFoundError: Unknown job
            JobStateError: Job already finished
        """
        job = self.jobs.get(job_id)
        self.db.refresh(job)
        if job.is_terminal:
            raise JobStateError(f'Cannot cancel job "{job_id}" - status is "{job.status}".')

        self.jobs.transition(job, ImportJobStatus.CANCELLED.value, "Cancelled by request")
        self.activity.log(actor, "cancel_job", "job", job_id)
        return True

    def cleanup_jobs(self, older_than_days: Optional[int] = None) -> int:
        return self.jobs.cleanup_old_jobs(older_than_days)

    # Collections and entries

    def list_collections(self, include_stats: bool = False) -> list[dict]:
        """Configured artist mappings, optionally with imported and archive counts."""
        collections = []
        for mapping in self.artist_mappings:
            item = {
                "artist_name": mapping.get("artist_name"),
                "collection_id": mapping.get("collection_id"),
                "category_id": mapping.get("category_id"),
            }
            if include_stats:
                item["imported_count"] = (
                    self.db.query(CatalogEntry)
                    .filter(CatalogEntry.artist_name == mapping.get("artist_name"))
                    .count()
                )
                item["total_items"] = self._archive_total(mapping.get("collection_id"))
            collections.append(item)
        return collections

    def delete_entry(self, sku: str, actor: str = "api") -> bool:
        """Delete one archive entry with its links and search row.

        Raises:
            ValidationError: Empty SKU
            EntryNotFoundError: No such entry
            EntryDeleteError: Entry was not imported from the archive
        """
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("SKU cannot be empty.")

        entry = self.db.query(CatalogEntry).filter(CatalogEntry.sku == sku).first()
        if entry is None:
            raise EntryNotFoundError(f'Entry with SKU "{sku}" does not exist.')
        if not entry.show_identifier:
            raise EntryDeleteError(f'Entry "{sku}" is not an archive entry.')

        details = {"name": entry.name, "show_identifier": entry.show_identifier}
        self._delete_entries([entry.id])
        self.activity.log(actor, "delete_entry", "entry", sku, details, commit=False)
        self.db.commit()
        logger.info(f"Deleted catalog entry {sku}")
        return True

    def cleanup_entries(
        self,
        collection: Optional[str] = None,
        older_than_days: Optional[int] = None,
        dry_run: bool = False,
        batch_size: int = DEFAULT_CLEANUP_BATCH,
        actor: str = "api",
    ) -> dict:
        """Delete archive entries by collection and/or age, in batches.

        Returns:
            {"found", "deleted", "errors", "preview"}; preview lists up to 50 SKUs
        """
        collection = (collection or "").strip() or None
        if collection is None and older_than_days is None:
            raise ValidationError("Specify at least one filter: collection or older_than_days.")
        if older_than_days is not None and older_than_days <= 0:
            raise ValidationError("older_than_days must be a positive number.")
        if batch_size is None or batch_size < 1 or batch_size > MAX_CLEANUP_BATCH:
            batch_size = DEFAULT_CLEANUP_BATCH

        conditions = [CatalogEntry.show_identifier.is_not(None), CatalogEntry.show_identifier != ""]
        if collection is not None:
            option_id = self._collection_option_id(collection)
            if option_id is None:
                raise ValidationError(f'Collection/artist "{collection}" not found.')
            conditions.append(CatalogEntry.collection_option_id == option_id)
        if older_than_days is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
            conditions.append(CatalogEntry.created_at < cutoff)

        found = self.db.query(CatalogEntry).filter(*conditions).count()
        rows = self.db.query(CatalogEntry.sku).filter(*conditions).order_by(CatalogEntry.id).limit(PREVIEW_LIMIT)
        preview = [row.sku for row in rows.all()]

        summary = {"found": found, "deleted": 0, "errors": 0, "preview": preview}
        if dry_run or not found:
            return summary

        last_id = 0
        while True:
            rows = (
                self.db.query(CatalogEntry.id)
                .filter(*conditions, CatalogEntry.id > last_id)
                .order_by(CatalogEntry.id)
                .limit(batch_size)
                .all()
            )
            ids = [row.id for row in rows]
            if not ids:
                break
            last_id = ids[-1]

            try:
                self._delete_entries(ids)
                self.db.commit()
                summary["deleted"] += len(ids)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Cleanup batch ending at entry {last_id} failed: {e}")
                summary["errors"] += len(ids)

        self.activity.log(actor, "cleanup_entries", "entry", None, {
            "collection": collection,
            "older_than_days": older_than_days,
            "found": summary["found"],
            "deleted": summary["deleted"],
            "errors": summary["errors"],
        })
        logger.info(f"Cleanup removed {summary['deleted']} of {found} entries")
        return summary

    def reindex(self) -> int:
        """Rebuild the search index and switch every indexer back to realtime."""
        indexer = IndexerService(self.db)
        written = indexer.reindex_all()
        for indexer_id in indexer.get_modes():
            indexer.set_mode(indexer_id, IndexerMode.REALTIME.value)
        self.db.commit()
        return written

    # Audit and review

    def list_runs(
        self,
        limit: int = 20,
        artist_name: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[ImportRun]:
        return self.audit.recent_runs(limit, artist_name, status)

    def list_unmatched(
        self,
        artist_name: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> list[UnmatchedTrack]:
        return UnmatchedTrackRecorder(self.db).list(artist_name, status, limit)

    def resolve_unmatched(
        self,
        unmatched_id: int,
        status: str,
        track_key: Optional[str] = None,
    ) -> UnmatchedTrack:
        return UnmatchedTrackRecorder(self.db).resolve(unmatched_id, status, track_key)

    def unmatched_stats(self, artist_name: Optional[str] = None) -> dict[str, int]:
        return UnmatchedTrackRecorder(self.db).stats(artist_name)

    def list_artist_status(self, limit: int = 100) -> list[ArtistStatus]:
        return ArtistStatusService(self.db).list(limit)

    def get_artist_status(self, artist_name: str) -> ArtistStatus:
        """Stored totals for one artist, computed on first request.

        Raises:
            ValidationError: Empty artist name
        """
        artist_name = (artist_name or "").strip()
        if not artist_name:
            raise ValidationError("Artist name cannot be empty.")
        service = ArtistStatusService(self.db)
        return service.get(artist_name) or service.refresh(artist_name, self.collection_for(artist_name))

    # Internals

    def build_importer(self, writer: Optional[str] = None) -> ShowImporter:
        """Fresh per-run collaborators; nothing is shared between runs."""
        attribute_options = AttributeOptionManager(self.db)
        matcher = TrackMatcher(self.catalog_loader)
        writer_cls = BulkTrackImporter if (writer or settings.import_writer) == "bulk" else TrackImporter
        track_importer = writer_cls(self.db, attribute_options=attribute_options, matcher=matcher)
        return ShowImporter(
            self.db,
            self.archive,
            track_importer=track_importer,
            classification=CategoryAssignmentService(self.db, self.artist_mappings),
            attribute_options=attribute_options,
            matcher=matcher,
        )

    def _run(
        self,
        job: ImportJob,
        writer: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        importer = self.build_importer(writer)

        def progress(total: int, current: int, message: str) -> None:
            self.jobs.update_progress(job, total, current, message)
            if progress_callback is not None:
                progress_callback(total, current, message)

        if job.dry_run:
            return importer.dry_run(
                job.artist_name, job.collection_id, job.limit, job.offset, progress_callback=progress
            )

        return importer.import_collection(
            job.artist_name,
            job.collection_id,
            job.limit,
            job.offset,
            progress_callback=progress,
            cancel_check=lambda: self.jobs.is_cancelled(job.job_id),
        )

    def _finish(
        self,
        job: ImportJob,
        run: Optional[ImportRun],
        result: Optional[ImportResult],
        status: str,
        error: Optional[BaseException],
    ) -> ImportJob:
        if result is not None:
            self.jobs.record_result(job, result.to_dict())
        if error is not None:
            job.error_count = (job.error_count or 0) + 1
            job.errors = (job.errors or []) + [{"message": str(error), "context": job.collection_id}]

        # A cancel from another process may already have closed the job
        self.db.commit()
        self.db.refresh(job)
        if job.status == ImportJobStatus.CANCELLED.value:
            status = ImportJobStatus.CANCELLED.value
        elif job.status == ImportJobStatus.RUNNING.value:
            message = str(error) if error is not None else self._summary(result)
            self.jobs.transition(job, status, message)
        else:
            # Never got to running
            self.jobs.transition(job, ImportJobStatus.FAILED.value, str(error))
            status = ImportJobStatus.FAILED.value

        if run is not None:
            exit_code = 0 if status in (ImportJobStatus.COMPLETED.value, ImportJobStatus.CANCELLED.value) else 1
            self.audit.finish(run, result.to_dict() if result else None, status, exit_code, error)

        return job

    @staticmethod
    def _summary(result: Optional[ImportResult]) -> str:
        if result is None:
            return ""
        return (
            f"{result.shows_processed} shows, {result.tracks_created} created, "
            f"{result.tracks_updated} updated, {result.tracks_skipped} skipped, "
            f"{result.error_count} errors"
        )

    def _refresh_artist_status(
        self,
        artist_name: str,
        collection_id: Optional[str],
        job: Optional[ImportJob] = None,
    ) -> None:
        try:
            ArtistStatusService(self.db).refresh(artist_name, collection_id, job)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Could not refresh artist status for {artist_name}: {e}")

    def _archive_total(self, collection_id: Optional[str]) -> Optional[int]:
        if not collection_id:
            return None
        try:
            return self.archive.get_collection_count(collection_id)
        except Exception as e:
            logger.warning(f"Could not count archive items for {collection_id}: {e}")
            return None

    def _collection_option_id(self, collection: str) -> Optional[int]:
        option = self.db.query(AttributeOption).filter(
            AttributeOption.attribute_code == ARCHIVE_COLLECTION,
            func.lower(AttributeOption.label) == collection.lower(),
        ).first()
        return option.id if option is not None else None

    def _delete_entries(self, entry_ids: list[int]) -> None:
        self.db.execute(delete(EntryNodeLink).where(EntryNodeLink.entry_id.in_(entry_ids)))
        IndexerService(self.db).remove_entries(entry_ids)
        self.db.execute(delete(CatalogEntry).where(CatalogEntry.id.in_(entry_ids)))
