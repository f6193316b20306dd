"""External service integrations."""
from liveloader.integrations.archive import (
    ArchiveClient,
    ArchiveError,
    ArchiveSource,
    Show,
    Track,
)

__all__ = [
    "ArchiveClient",
    "ArchiveError",
    "ArchiveSource",
    "Show",
    "Track",
]
