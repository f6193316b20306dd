"""Business logic services."""
from liveloader.services.lock import LockService, LockError
from liveloader.services.artist_catalog import ArtistCatalogLoader
from liveloader.services.track_matcher import TrackMatcher
from liveloader.services.attribute_options import AttributeOptionManager
from liveloader.services.classification import CategoryAssignmentService
from liveloader.services.activity import ActivityService
from liveloader.services.track_importer import TrackImporter
from liveloader.services.bulk_importer import BulkTrackImporter
from liveloader.services.show_importer import ShowImporter, ImportResult
from liveloader.services.job_status import JobStatusManager
from liveloader.services.audit import ImportRunRecorder
from liveloader.services.import_management import ImportManagementService

__all__ = [
    "LockService",
    "LockError",
    "ArtistCatalogLoader",
    "TrackMatcher",
    "AttributeOptionManager",
    "CategoryAssignmentService",
    "ActivityService",
    "TrackImporter",
    "BulkTrackImporter",
    "ShowImporter",
    "ImportResult",
    "JobStatusManager",
    "ImportRunRecorder",
    "ImportManagementService",
]
