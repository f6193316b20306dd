"""Catalog entry model."""
from sqlalchemy import Column, Integer, String, BigInteger, DateTime, Float, ForeignKey, Text
from sqlalchemy.sql import func
from liveloader.database import Base


class CatalogEntry(Base):
    """Durable record for one imported live track.

    The sku is the generated key derived from (show identifier, file name)
    and is the only thing that decides create vs update on re-import.
    """

    __tablename__ = "catalog_entries"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(128), nullable=False, unique=True, index=True)
    name = Column(String(500), nullable=False)  # "Artist Title Year Venue"
    url_key = Column(String(64), nullable=False, unique=True)
    title = Column(String(255), nullable=False, index=True)
    artist_name = Column(String(255), nullable=False, index=True)

    # Show
    show_identifier = Column(String(255), index=True)
    show_title = Column(String(500))
    show_date = Column(String(32))
    lineage = Column(Text)
    notes = Column(Text)
    rating = Column(Float)
    num_reviews = Column(Integer, default=0)

    # File
    track_number = Column(Integer)
    file_name = Column(String(500))
    file_format = Column(String(50))
    file_size = Column(BigInteger)
    file_sha1 = Column(String(40))
    length_seconds = Column(Float)
    length_display = Column(String(16))  # M:SS or H:MM:SS
    song_url = Column(String(1000))

    # Attribute option codes
    year_option_id = Column(Integer, ForeignKey("attribute_options.id", ondelete="SET NULL"))
    venue_option_id = Column(Integer, ForeignKey("attribute_options.id", ondelete="SET NULL"))
    taper_option_id = Column(Integer, ForeignKey("attribute_options.id", ondelete="SET NULL"))
    transferer_option_id = Column(Integer, ForeignKey("attribute_options.id", ondelete="SET NULL"))
    location_option_id = Column(Integer, ForeignKey("attribute_options.id", ondelete="SET NULL"))
    collection_option_id = Column(Integer, ForeignKey("attribute_options.id", ondelete="SET NULL"), index=True)

    # Track matching
    canonical_track_key = Column(String(255), index=True)
    match_algorithm = Column(String(20))  # exact, alias, metaphone, fuzzy
    match_confidence = Column(Integer)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<CatalogEntry {self.sku}>"
