"""Unmatched track model."""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from liveloader.database import Base
import enum


class UnmatchedTrackStatus(str, enum.Enum):
    """Resolution states for unmatched tracks."""
    PENDING = "pending"
    MAPPED = "mapped"  # Alias added to the artist catalog
    IGNORED = "ignored"
    NEW_TRACK = "new_track"  # Added to the catalog as a new song


class UnmatchedTrack(Base):
    """Track title that failed every matching tier, queued for manual resolution."""

    __tablename__ = "unmatched_tracks"
    __table_args__ = (
        UniqueConstraint('artist_name', 'normalized_title', name='uq_unmatched_artist_title'),
    )

    id = Column(Integer, primary_key=True, index=True)
    artist_name = Column(String(255), nullable=False, index=True)
    track_title = Column(String(500), nullable=False)
    normalized_title = Column(String(500), nullable=False)
    show_identifier = Column(String(255))  # Most recent show seen in
    show_date = Column(String(32))
    track_number = Column(Integer)
    track_file = Column(String(500))

    suggested_match = Column(String(255))
    suggested_algorithm = Column(String(20))
    match_confidence = Column(Integer)

    status = Column(String(20), default=UnmatchedTrackStatus.PENDING.value, nullable=False, index=True)
    mapped_track_key = Column(String(255))
    occurrence_count = Column(Integer, default=1, nullable=False)
    first_seen_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<UnmatchedTrack {self.artist_name}: {self.track_title} x{self.occurrence_count}>"
