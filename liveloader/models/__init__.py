"""SQLAlchemy models for liveloader."""
from liveloader.models.attribute_option import AttributeOption
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.classification import ClassificationNode, EntryNodeLink
from liveloader.models.indexer import IndexerMode, IndexerState, SearchIndexRow
from liveloader.models.import_job import ImportJob, ImportJobStatus
from liveloader.models.import_run import ImportRun
from liveloader.models.unmatched_track import UnmatchedTrack, UnmatchedTrackStatus
from liveloader.models.activity import ActivityLog
from liveloader.models.artist_status import ArtistStatus

__all__ = [
    "AttributeOption",
    "CatalogEntry",
    "ClassificationNode",
    "EntryNodeLink",
    "IndexerMode",
    "IndexerState",
    "SearchIndexRow",
    "ImportJob",
    "ImportJobStatus",
    "ImportRun",
    "UnmatchedTrack",
    "UnmatchedTrackStatus",
    "ActivityLog",
    "ArtistStatus",
]
