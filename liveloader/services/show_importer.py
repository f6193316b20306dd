"""Collection and show import orchestration."""
import gc
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from liveloader.config import settings
from liveloader.integrations.archive import ArchiveSource, Show
from liveloader.services.attribute_options import AttributeOptionManager
from liveloader.services.catalog_values import generate_entry_key
from liveloader.services.classification import CategoryAssignmentService
from liveloader.services.track_importer import TrackImporter, TrackImportResult
from liveloader.services.track_matcher import TrackMatcher

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]
CancelCheck = Callable[[], bool]


class CollectionImportError(Exception):
    """The collection itself could not be imported (e.g. listing failed)."""
    pass


@dataclass
class ImportResult:
    """Aggregate outcome of an import or dry run."""
    artist_name: str = ""
    collection_id: Optional[str] = None
    shows_processed: int = 0
    tracks_created: int = 0
    tracks_updated: int = 0
    tracks_skipped: int = 0
    tracks_matched: int = 0
    tracks_unmatched: int = 0
    errors: list[dict] = field(default_factory=list)
    cache_clears: int = 0
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def add_error(self, message: str, context: Optional[str] = None) -> None:
        self.errors.append({"message": message, "context": context})

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def total_tracks(self) -> int:
        return self.tracks_created + self.tracks_updated + self.tracks_skipped

    @property
    def duration(self) -> Optional[float]:
        """Seconds between start and completion, None while running."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def add_tracks(self, tracks: TrackImportResult) -> None:
        self.tracks_created += tracks.created
        self.tracks_updated += tracks.updated
        self.tracks_skipped += tracks.skipped
        self.tracks_matched += tracks.matched
        self.tracks_unmatched += tracks.unmatched
        for error in tracks.errors:
            self.add_error(error["message"], error.get("context"))

    def merge(self, other: "ImportResult") -> None:
        self.shows_processed += other.shows_processed
        self.tracks_created += other.tracks_created
        self.tracks_updated += other.tracks_updated
        self.tracks_skipped += other.tracks_skipped
        self.tracks_matched += other.tracks_matched
        self.tracks_unmatched += other.tracks_unmatched
        self.cache_clears += other.cache_clears
        self.errors.extend(other.errors)
        self.cancelled = self.cancelled or other.cancelled

    def finish(self) -> "ImportResult":
        self.completed_at = datetime.now(timezone.utc)
        return self

    def to_dict(self) -> dict:
        return {
            "artist_name": self.artist_name,
            "collection_id": self.collection_id,
            "shows_processed": self.shows_processed,
            "tracks_created": self.tracks_created,
            "tracks_updated": self.tracks_updated,
            "tracks_skipped": self.tracks_skipped,
            "tracks_matched": self.tracks_matched,
            "tracks_unmatched": self.tracks_unmatched,
            "total_tracks": self.total_tracks,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "cache_clears": self.cache_clears,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration": self.duration,
        }


class ShowImporter:
    """Imports an archive collection show by show, in fetch order.

    Caches held by the collaborators are dropped every `batch_size` shows so
    a long run does not grow without bound.
    """

    def __init__(
        self,
        db: Session,
        archive: ArchiveSource,
        track_importer: Optional[TrackImporter] = None,
        classification: Optional[CategoryAssignmentService] = None,
        attribute_options: Optional[AttributeOptionManager] = None,
        matcher: Optional[TrackMatcher] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.archive = archive
        self.attribute_options = attribute_options or AttributeOptionManager(db)
        self.matcher = matcher
        self.track_importer = track_importer or TrackImporter(
            db, attribute_options=self.attribute_options, matcher=matcher
        )
        self.classification = classification or CategoryAssignmentService(db)
        self.batch_size = max(1, batch_size or settings.import_batch_size)
        self._artist_node_id: Optional[int] = None

    def import_collection(
        self,
        artist: str,
        collection_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> ImportResult:
        """Import every show of a collection.

        Raises:
            CollectionImportError: The identifier listing could not be fetched
        """
        result = ImportResult(artist_name=artist, collection_id=collection_id)
        logger.info(f"Starting import: {artist} ({collection_id}) limit={limit} offset={offset}")

        self._artist_node_id = self.classification.get_or_create_artist_node(artist, collection_id)

        try:
            identifiers = self.archive.list_collection_identifiers(collection_id, limit, offset)
        except Exception as e:
            result.add_error(f"Collection import failed: {e}")
            result.finish()
            logger.error(f"Collection import failed for {collection_id}: {e}")
            raise CollectionImportError(f"Collection import failed: {e}") from e

        total = len(identifiers)
        self._notify(progress_callback, total, 0, f"Starting import of {total} shows")

        current = 0
        self.track_importer.begin_run()
        try:
            for start in range(0, total, self.batch_size):
                for identifier in identifiers[start:start + self.batch_size]:
                    if cancel_check and cancel_check():
                        logger.info(f"Import of {collection_id} cancelled after {current} shows")
                        result.cancelled = True
                        break

                    current += 1
                    try:
                        show = self.archive.fetch_item_metadata(identifier)
                        self._process_show(show, artist, result)
                    except Exception as e:
                        self._rollback()
                        logger.error(f"Show processing failed: {identifier}: {e}")
                        result.add_error(str(e), identifier)
                        continue

                    self._notify(progress_callback, total, current, f"Processed: {identifier}")

                self._clear_caches(result)
                if result.cancelled:
                    break
        finally:
            self.track_importer.end_run()

        result.finish()
        logger.info(
            f"Import complete: {artist} - {result.shows_processed} shows, "
            f"{result.tracks_created} created, {result.tracks_updated} updated, "
            f"{result.error_count} errors in {result.duration:.1f}s"
        )
        return result

    def import_show(self, identifier: str, artist: str) -> ImportResult:
        """Import a single show by identifier; errors are recorded, not raised."""
        result = ImportResult(artist_name=artist)

        if self._artist_node_id is None:
            self._artist_node_id = self.classification.get_or_create_artist_node(artist)

        self.track_importer.begin_run()
        try:
            show = self.archive.fetch_item_metadata(identifier)
            self._process_show(show, artist, result)
        except Exception as e:
            self._rollback()
            logger.error(f"Show import failed: {identifier}: {e}")
            result.add_error(str(e), identifier)
        finally:
            self.track_importer.end_run()

        return result.finish()

    def dry_run(
        self,
        artist: str,
        collection_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Count what an import would create or update without writing anything.

        Raises:
            CollectionImportError: The identifier listing could not be fetched
        """
        result = ImportResult(artist_name=artist, collection_id=collection_id)

        try:
            identifiers = self.archive.list_collection_identifiers(collection_id, limit, offset)
        except Exception as e:
            logger.error(f"Dry run failed for {collection_id}: {e}")
            raise CollectionImportError(f"Dry run failed: {e}") from e

        total = len(identifiers)
        self._notify(progress_callback, total, 0, f"Starting dry run of {total} shows")

        for current, identifier in enumerate(identifiers, 1):
            try:
                show = self.archive.fetch_item_metadata(identifier)
            except Exception as e:
                result.add_error(str(e), identifier)
                continue

            keys = [generate_entry_key(show.identifier, track.name) for track in show.tracks]
            existing = self.track_importer.existing_keys([k for k in keys if k])

            result.shows_processed += 1
            for key in keys:
                if not key:
                    result.tracks_skipped += 1
                elif key in existing:
                    result.tracks_updated += 1
                else:
                    result.tracks_created += 1

            self._notify(progress_callback, total, current, f"Checked: {identifier}")

        return result.finish()

    def _process_show(self, show: Show, artist: str, result: ImportResult) -> None:
        tracks = self.track_importer.import_show_tracks(show, artist)
        result.shows_processed += 1
        result.add_tracks(tracks)

        if tracks.entry_ids and self._artist_node_id is not None:
            self.classification.bulk_assign(tracks.entry_ids, self._artist_node_id)
            show_node_id = self.classification.get_or_create_show_node(
                show.identifier, show.title, self._artist_node_id
            )
            self.classification.bulk_assign(tracks.entry_ids, show_node_id)
            self.db.commit()

        logger.debug(f"Processed show {show.identifier}: {len(show.tracks)} tracks")

    def _rollback(self) -> None:
        """Roll back a failed show; cached ids may point at rows that are gone."""
        self.db.rollback()
        self.attribute_options.clear_cache()
        self.classification.clear_cache()

    def _clear_caches(self, result: ImportResult) -> None:
        self.attribute_options.clear_cache()
        self.classification.clear_cache()
        if self.matcher is not None:
            self.matcher.clear_indexes()
        gc.collect()
        result.cache_clears += 1

    @staticmethod
    def _notify(callback: Optional[ProgressCallback], total: int, current: int, message: str) -> None:
        if callback is not None:
            callback(total, current, message)
