"""Pydantic schemas for API request/response validation."""
from liveloader.schemas.common import MessageResponse
from liveloader.schemas.imports import (
    ImportCreate,
    ImportJobResponse,
    CollectionResponse,
    CleanupRequest,
    CleanupResponse,
    ImportRunResponse,
    UnmatchedTrackResponse,
    UnmatchedResolve,
    ArtistStatusResponse,
)

__all__ = [
    "MessageResponse",
    "ImportCreate",
    "ImportJobResponse",
    "CollectionResponse",
    "CleanupRequest",
    "CleanupResponse",
    "ImportRunResponse",
    "UnmatchedTrackResponse",
    "UnmatchedResolve",
    "ArtistStatusResponse",
]
