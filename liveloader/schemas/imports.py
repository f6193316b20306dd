"""Import job, run and catalog maintenance schemas."""
import re
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, field_validator

from liveloader.models.unmatched_track import UnmatchedTrackStatus

COLLECTION_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


class ImportCreate(BaseModel):
    """Start import request."""
    artist: str
    collection: str
    limit: Optional[int] = None
    offset: Optional[int] = None
    dry_run: bool = False
    writer: Optional[str] = None

    @field_validator("artist")
    @classmethod
    def validate_artist(cls, v):
        if not v or not v.strip():
            raise ValueError("Artist name cannot be empty")
        return v.strip()

    @field_validator("collection")
    @classmethod
    def validate_collection(cls, v):
        v = (v or "").strip()
        if not COLLECTION_ID_RE.match(v):
            raise ValueError("Collection ID may only contain letters, numbers, underscores and hyphens")
        return v

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Limit must be a positive number")
        return v

    @field_validator("offset")
    @classmethod
    def validate_offset(cls, v):
        if v is not None and v < 0:
            raise ValueError("Offset cannot be negative")
        return v

    @field_validator("writer")
    @classmethod
    def validate_writer(cls, v):
        if v is not None and v not in ("orm", "bulk"):
            raise ValueError("Writer must be orm or bulk")
        return v


class ImportJobResponse(BaseModel):
    """Import job status."""
    job_id: str
    status: str
    artist_name: str
    collection_id: str
    limit: Optional[int] = None
    offset: Optional[int] = None
    dry_run: bool = False
    progress: int = 0
    total_shows: Optional[int] = 0
    processed_shows: Optional[int] = 0
    tracks_created: Optional[int] = 0
    tracks_updated: Optional[int] = 0
    tracks_skipped: Optional[int] = 0
    error_count: Optional[int] = 0
    errors: Optional[list[dict]] = None
    message: Optional[str] = None
    correlation_id: Optional[str] = None
    celery_task_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CollectionResponse(BaseModel):
    """Configured artist collection."""
    artist_name: Optional[str] = None
    collection_id: Optional[str] = None
    category_id: Optional[int] = None
    imported_count: Optional[int] = None
    total_items: Optional[int] = None


class CleanupRequest(BaseModel):
    """Bulk entry cleanup request. At least one filter is required."""
    collection: Optional[str] = None
    older_than_days: Optional[int] = None
    dry_run: bool = False
    batch_size: int = 100


class CleanupResponse(BaseModel):
    """Bulk entry cleanup outcome."""
    found: int
    deleted: int
    errors: int
    preview: list[str] = []


class ImportRunResponse(BaseModel):
    """Audit record of one pipeline execution."""
    id: int
    uuid: str
    correlation_id: str
    job_id: Optional[str] = None
    artist_name: Optional[str] = None
    collection_id: Optional[str] = None
    command_name: str
    command_args: Optional[dict] = None
    started_by: Optional[str] = None
    status: str
    exit_code: Optional[int] = None
    items_processed: Optional[int] = None
    items_successful: Optional[int] = None
    items_failed: Optional[int] = None
    items_skipped: Optional[int] = None
    duration_seconds: Optional[float] = None
    throughput_per_sec: Optional[float] = None
    avg_item_time_ms: Optional[float] = None
    memory_peak_mb: Optional[float] = None
    error_message: Optional[str] = None
    errors: Optional[list[dict]] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnmatchedTrackResponse(BaseModel):
    """Track title no matching tier resolved."""
    id: int
    artist_name: str
    track_title: str
    normalized_title: str
    show_identifier: Optional[str] = None
    show_date: Optional[str] = None
    suggested_match: Optional[str] = None
    suggested_algorithm: Optional[str] = None
    match_confidence: Optional[int] = None
    status: str
    mapped_track_key: Optional[str] = None
    occurrence_count: int
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnmatchedResolve(BaseModel):
    """Resolve an unmatched track."""
    status: str
    track_key: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in {s.value for s in UnmatchedTrackStatus}:
            raise ValueError("Invalid status")
        return v


class ArtistStatusResponse(BaseModel):
    """Catalog and matching totals for one artist."""
    artist_name: str
    collection_id: Optional[str] = None
    imported_tracks: int
    matched_tracks: int
    unmatched_tracks: int
    match_rate_percent: float
    total_shows: int
    total_venues: int
    total_hours: int
    last_job_id: Optional[str] = None
    last_status: Optional[str] = None
    last_import_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
