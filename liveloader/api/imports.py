"""Import job and catalog maintenance endpoints."""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from liveloader.dependencies import get_import_service
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
from liveloader.services.import_management import (
    ImportManagementService,
    ValidationError,
    EntryNotFoundError,
    EntryDeleteError,
)
from liveloader.services.job_status import JobNotFoundError, JobStateError
from liveloader.services.unmatched import UnmatchedTrackError


router = APIRouter(tags=["imports"])


@router.post("/imports", response_model=ImportJobResponse, status_code=202)
def start_import(
    data: ImportCreate,
    service: ImportManagementService = Depends(get_import_service),
):
    """Queue an import job.

    The job runs in a Celery worker; poll /imports/{job_id} for progress.
    """
    try:
        return service.start_import(
            data.artist,
            data.collection,
            limit=data.limit,
            offset=data.offset,
            dry_run=data.dry_run,
            started_by="api",
            writer=data.writer,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/imports", response_model=list[ImportJobResponse])
def list_imports(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    service: ImportManagementService = Depends(get_import_service),
):
    """List import jobs, newest first."""
    return service.list_jobs(status, limit)


@router.get("/imports/{job_id}", response_model=ImportJobResponse)
def get_import(
    job_id: str,
    service: ImportManagementService = Depends(get_import_service),
):
    """Get import job status and progress."""
    try:
        return service.get_job_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/imports/{job_id}/cancel", response_model=MessageResponse)
def cancel_import(
    job_id: str,
    service: ImportManagementService = Depends(get_import_service),
):
    """Cancel a queued or running job. A running job stops before its next show."""
    try:
        service.cancel_job(job_id, actor="api")
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except JobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": f"Job {job_id} cancelled"}


@router.get("/collections", response_model=list[CollectionResponse])
def list_collections(
    include_stats: bool = False,
    service: ImportManagementService = Depends(get_import_service),
):
    """Configured artist collections, optionally with imported/archive counts."""
    return service.list_collections(include_stats=include_stats)


@router.delete("/entries/{sku}", response_model=MessageResponse)
def delete_entry(
    sku: str,
    service: ImportManagementService = Depends(get_import_service),
):
    """Delete one imported catalog entry."""
    try:
        service.delete_entry(sku, actor="api")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EntryDeleteError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": f"Entry {sku} deleted"}


@router.post("/entries/cleanup", response_model=CleanupResponse)
def cleanup_entries(
    data: CleanupRequest,
    service: ImportManagementService = Depends(get_import_service),
):
    """Delete imported entries by collection and/or age."""
    try:
        return service.cleanup_entries(
            collection=data.collection,
            older_than_days=data.older_than_days,
            dry_run=data.dry_run,
            batch_size=data.batch_size,
            actor="api",
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/runs", response_model=list[ImportRunResponse])
def list_runs(
    artist: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(20, ge=1, le=200),
    service: ImportManagementService = Depends(get_import_service),
):
    """Import run audit trail, newest first."""
    return service.list_runs(limit, artist, status)


@router.get("/unmatched", response_model=list[UnmatchedTrackResponse])
def list_unmatched(
    artist: Optional[str] = None,
    status: Optional[str] = "pending",
    limit: int = Query(100, ge=1, le=1000),
    service: ImportManagementService = Depends(get_import_service),
):
    """Track titles awaiting review, most frequent first."""
    return service.list_unmatched(artist, status, limit)


@router.get("/unmatched/stats", response_model=dict[str, int])
def unmatched_stats(
    artist: Optional[str] = None,
    service: ImportManagementService = Depends(get_import_service),
):
    """Unmatched track counts per review status."""
    return service.unmatched_stats(artist)


@router.patch("/unmatched/{unmatched_id}", response_model=UnmatchedTrackResponse)
def resolve_unmatched(
    unmatched_id: int,
    data: UnmatchedResolve,
    service: ImportManagementService = Depends(get_import_service),
):
    """Map, ignore or accept an unmatched track title."""
    try:
        return service.resolve_unmatched(unmatched_id, data.status, data.track_key)
    except UnmatchedTrackError as e:
        detail = str(e)
        raise HTTPException(status_code=404 if "not found" in detail else 400, detail=detail)


@router.get("/artists/status", response_model=list[ArtistStatusResponse])
def list_artist_status(
    limit: int = Query(100, ge=1, le=1000),
    service: ImportManagementService = Depends(get_import_service),
):
    """Stored per-artist totals, refreshed after each import."""
    return service.list_artist_status(limit)


@router.get("/artists/{artist}/status", response_model=ArtistStatusResponse)
def get_artist_status(
    artist: str,
    service: ImportManagementService = Depends(get_import_service),
):
    """Totals for one artist."""
    try:
        return service.get_artist_status(artist)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
