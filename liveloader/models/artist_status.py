"""Per-artist import status model."""
from sqlalchemy import Column, Integer, String, DateTime, Float
from sqlalchemy.sql import func
from liveloader.database import Base


class ArtistStatus(Base):
    """Catalog and matching totals for one artist, refreshed after each import."""

    __tablename__ = "artist_status"

    id = Column(Integer, primary_key=True, index=True)
    artist_name = Column(String(255), nullable=False, unique=True, index=True)
    collection_id = Column(String(255))

    imported_tracks = Column(Integer, default=0, nullable=False)
    matched_tracks = Column(Integer, default=0, nullable=False)
    unmatched_tracks = Column(Integer, default=0, nullable=False)  # Pending review rows
    match_rate_percent = Column(Float, default=0.0, nullable=False)
    total_shows = Column(Integer, default=0, nullable=False)
    total_venues = Column(Integer, default=0, nullable=False)
    total_hours = Column(Integer, default=0, nullable=False)

    last_job_id = Column(String(64))
    last_status = Column(String(20))
    last_import_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ArtistStatus {self.artist_name}: {self.imported_tracks} tracks>"
