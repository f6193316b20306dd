"""Search index models."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from liveloader.database import Base
import enum


class IndexerMode(str, enum.Enum):
    """Index maintenance modes."""
    REALTIME = "realtime"  # Rows refreshed on every entry save
    SCHEDULE = "schedule"  # Rows refreshed only by an explicit reindex


class IndexerState(Base):
    """Current maintenance mode of a named indexer."""

    __tablename__ = "indexer_states"

    indexer_id = Column(String(64), primary_key=True)
    mode = Column(String(20), nullable=False, default=IndexerMode.REALTIME.value)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<IndexerState {self.indexer_id} {self.mode}>"


class SearchIndexRow(Base):
    """Denormalized search text for one catalog entry."""

    __tablename__ = "catalog_search_index"

    entry_id = Column(Integer, ForeignKey("catalog_entries.id", ondelete="CASCADE"), primary_key=True)
    artist_name = Column(String(255), index=True)
    search_text = Column(Text, nullable=False)

    def __repr__(self):
        return f"<SearchIndexRow {self.entry_id}>"
