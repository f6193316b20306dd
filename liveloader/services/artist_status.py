"""Per-artist catalog totals for dashboards."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from liveloader.models.artist_status import ArtistStatus
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.import_job import ImportJob
from liveloader.models.unmatched_track import UnmatchedTrack, UnmatchedTrackStatus

logger = logging.getLogger(__name__)


class ArtistStatusService:
    """Recomputes and stores one ArtistStatus row per artist."""

    def __init__(self, db: Session):
        self.db = db

    def refresh(
        self,
        artist_name: str,
        collection_id: Optional[str] = None,
        job: Optional[ImportJob] = None,
    ) -> ArtistStatus:
        """Recount the artist's entries and pending unmatched tracks, then commit.

        Args:
            job: Import job that triggered the refresh; recorded as the last import
        """
        entries = self.db.query(CatalogEntry).filter(CatalogEntry.artist_name == artist_name)
        imported = entries.count()
        matched = entries.filter(CatalogEntry.canonical_track_key.isnot(None)).count()
        unmatched = self.db.query(UnmatchedTrack).filter(
            UnmatchedTrack.artist_name == artist_name,
            UnmatchedTrack.status == UnmatchedTrackStatus.PENDING.value,
        ).count()

        shows, venues, seconds = self.db.query(
            func.count(func.distinct(CatalogEntry.show_identifier)),
            func.count(func.distinct(CatalogEntry.venue_option_id)),
            func.coalesce(func.sum(CatalogEntry.length_seconds), 0),
        ).filter(CatalogEntry.artist_name == artist_name).one()

        status = self.get(artist_name)
        if status is None:
            status = ArtistStatus(artist_name=artist_name)
            self.db.add(status)

        if collection_id:
            status.collection_id = collection_id
        status.imported_tracks = imported
        status.matched_tracks = matched
        status.unmatched_tracks = unmatched
        status.match_rate_percent = round(matched / imported * 100, 2) if imported else 0.0
        status.total_shows = shows
        status.total_venues = venues
        status.total_hours = int(seconds // 3600)

        if job is not None:
            status.last_job_id = job.job_id
            status.last_status = job.status
            status.last_import_at = job.completed_at or datetime.now(timezone.utc)

        self.db.commit()
        logger.debug(
            f"Artist status {artist_name}: {imported} tracks, {matched} matched, {unmatched} pending"
        )
        return status

    def get(self, artist_name: str) -> Optional[ArtistStatus]:
        return self.db.query(ArtistStatus).filter(ArtistStatus.artist_name == artist_name).first()

    def list(self, limit: int = 100) -> list[ArtistStatus]:
        return self.db.query(ArtistStatus).order_by(ArtistStatus.artist_name).limit(limit).all()
