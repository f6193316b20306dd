"""Unmatched track recording and resolution."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from liveloader.integrations.archive import Show, Track
from liveloader.models.unmatched_track import UnmatchedTrack, UnmatchedTrackStatus
from liveloader.services.track_matcher import MatchResult
from liveloader.utils.normalize import normalize_track_name

logger = logging.getLogger(__name__)


class UnmatchedTrackError(Exception):
    """Unmatched track lookup or resolution failed."""
    pass


class UnmatchedTrackRecorder:
    """Keeps one row per (artist, normalized title) that no tier matched."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        artist_name: str,
        track: Track,
        show: Show,
        suggestion: Optional[MatchResult] = None,
    ) -> UnmatchedTrack:
        """Insert a new pending row or bump the occurrence count of an existing one."""
        normalized = normalize_track_name(track.title) or track.title
        now = datetime.now(timezone.utc)

        row = self.db.query(UnmatchedTrack).filter(
            UnmatchedTrack.artist_name == artist_name,
            UnmatchedTrack.normalized_title == normalized,
        ).first()

        if row is None:
            row = UnmatchedTrack(
                artist_name=artist_name,
                track_title=track.title,
                normalized_title=normalized,
                status=UnmatchedTrackStatus.PENDING.value,
                occurrence_count=1,
                first_seen_at=now,
            )
            self.db.add(row)
        else:
            row.occurrence_count = (row.occurrence_count or 0) + 1

        row.show_identifier = show.identifier
        row.show_date = show.date
        row.track_number = track.track_number
        row.track_file = track.name
        row.last_seen_at = now
        if suggestion is not None:
            row.suggested_match = suggestion.track_key
            row.suggested_algorithm = suggestion.algorithm
            row.match_confidence = suggestion.confidence

        self.db.flush()
        logger.debug(f"Unmatched '{track.title}' for {artist_name} (x{row.occurrence_count})")
        return row

    def list(
        self,
        artist_name: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> list[UnmatchedTrack]:
        query = self.db.query(UnmatchedTrack)
        if artist_name:
            query = query.filter(UnmatchedTrack.artist_name == artist_name)
        if status:
            query = query.filter(UnmatchedTrack.status == status)
        return query.order_by(UnmatchedTrack.occurrence_count.desc(), UnmatchedTrack.id).limit(limit).all()

    def resolve(self, unmatched_id: int, status: str, track_key: Optional[str] = None) -> UnmatchedTrack:
        """Set the resolution status of an unmatched track.

        Raises:
            UnmatchedTrackError: Unknown id, unknown status, or mapped without a track key
        """
        if status not in {s.value for s in UnmatchedTrackStatus}:
            raise UnmatchedTrackError(f"Unknown status: {status}")
        if status == UnmatchedTrackStatus.MAPPED.value and not track_key:
            raise UnmatchedTrackError("A track key is required to mark a track as mapped")

        row = self.db.get(UnmatchedTrack, unmatched_id)
        if row is None:
            raise UnmatchedTrackError(f"Unmatched track {unmatched_id} not found")

        row.status = status
        row.mapped_track_key = track_key if status == UnmatchedTrackStatus.MAPPED.value else None
        self.db.commit()
        return row

    def stats(self, artist_name: Optional[str] = None) -> dict[str, int]:
        """Row counts per status plus a total."""
        query = self.db.query(UnmatchedTrack.status, func.count(UnmatchedTrack.id))
        if artist_name:
            query = query.filter(UnmatchedTrack.artist_name == artist_name)
        counts = {s.value: 0 for s in UnmatchedTrackStatus}
        counts.update({status: count for status, count in query.group_by(UnmatchedTrack.status).all()})
        counts["total"] = sum(counts.values())
        return counts
