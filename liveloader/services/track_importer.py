"""Row-at-a-time catalog writer.

One lookup and one save per track through the ORM. BulkTrackImporter must
produce the same rows.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from liveloader.integrations.archive import Show, Track
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.services.attribute_options import AttributeOptionManager
from liveloader.services.catalog_values import entry_values, generate_entry_key, option_labels
from liveloader.services.indexer import IndexerService
from liveloader.services.track_matcher import MatchResult, TrackMatcher
from liveloader.services.unmatched import UnmatchedTrackRecorder
from liveloader.utils.normalize import artist_key

logger = logging.getLogger(__name__)


@dataclass
class TrackImportResult:
    """Outcome of writing one show's tracks."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    matched: int = 0
    unmatched: int = 0
    entry_ids: list[int] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    def add_error(self, message: str, context: str) -> None:
        self.errors.append({"message": message, "context": context})

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "entry_ids": list(self.entry_ids),
            "errors": list(self.errors),
        }


class TrackImporter:
    """Creates or updates one catalog entry per track via the ORM."""

    def __init__(
        self,
        db: Session,
        attribute_options: Optional[AttributeOptionManager] = None,
        matcher: Optional[TrackMatcher] = None,
        unmatched: Optional[UnmatchedTrackRecorder] = None,
        indexer: Optional[IndexerService] = None,
    ):
        self.db = db
        self.attribute_options = attribute_options or AttributeOptionManager(db)
        self.matcher = matcher
        self.unmatched = unmatched or UnmatchedTrackRecorder(db)
        self.indexer = indexer or IndexerService(db)

    def begin_run(self) -> None:
        """Called once before a multi-show run."""

    def end_run(self) -> None:
        """Called once after a multi-show run, even on failure."""

    def import_show_tracks(self, show: Show, artist: str) -> TrackImportResult:
        """Write every track of a show, in archive order.

        A failing track is rolled back to its savepoint, counted as skipped
        and recorded as an error; the remaining tracks still import.
        """
        result = TrackImportResult()
        realtime = self.indexer.is_realtime()

        # Resolved outside the per-track savepoints: cached option ids must
        # outlive a track rollback
        option_ids = self._resolve_options(show, artist)

        for track in show.tracks:
            key = generate_entry_key(show.identifier, track.name)
            if not key:
                result.skipped += 1
                continue

            try:
                with self.db.begin_nested():
                    match = self.match_track(track, show, artist, result)

                    entry = self.find_entry(key)
                    values = entry_values(show, track, artist, key, option_ids, match)

                    if entry is None:
                        entry = CatalogEntry(**values)
                        self.db.add(entry)
                        is_update = False
                    else:
                        for column, value in values.items():
                            setattr(entry, column, value)
                        is_update = True

                    self.db.flush()
                    if realtime:
                        self.indexer.index_entry(entry)

                result.entry_ids.append(entry.id)
                if is_update:
                    result.updated += 1
                else:
                    result.created += 1
            except Exception as e:
                logger.error(f"Track import failed: {show.identifier}/{track.name} ({track.title}): {e}")
                result.skipped += 1
                result.add_error(f"Failed to import track {key}: {e}", show.identifier)

        self.db.commit()
        return result

    def find_entry(self, key: str) -> Optional[CatalogEntry]:
        return self.db.query(CatalogEntry).filter(CatalogEntry.sku == key).first()

    def existing_keys(self, keys: list[str]) -> dict[str, int]:
        """Generated key -> entry id for keys already in the catalog."""
        if not keys:
            return {}
        rows = (
            self.db.query(CatalogEntry.sku, CatalogEntry.id)
            .filter(CatalogEntry.sku.in_(keys))
            .all()
        )
        return {sku: entry_id for sku, entry_id in rows}

    def match_track(
        self, track: Track, show: Show, artist: str, result: TrackImportResult
    ) -> Optional[MatchResult]:
        """Run the matcher; record an unmatched track when every tier misses."""
        if self.matcher is None:
            return None

        key = artist_key(artist)
        if not self.matcher.has_catalog(key):
            return None

        match = self.matcher.match(track.title, key)
        if match is not None:
            result.matched += 1
            return match

        result.unmatched += 1
        self.unmatched.record(artist, track, show, self.matcher.suggest(track.title, key))
        return None

    def _resolve_options(self, show: Show, artist: str) -> dict[str, int]:
        return {
            code: self.attribute_options.get_or_create_option_id(code, label)
            for code, label in option_labels(show, artist).items()
        }
