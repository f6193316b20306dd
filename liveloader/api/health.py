"""Health check endpoints for monitoring and load balancers."""
from pathlib import Path
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
import redis

from liveloader.database import get_db
from liveloader.config import settings
from liveloader import __version__


router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for load balancers and monitoring.

    Returns status of all critical dependencies.
    """
    status = {
        "status": "healthy",
        "version": __version__,
        "checks": {}
    }

    # Database check
    try:
        db.execute(text("SELECT 1"))
        status["checks"]["database"] = "ok"
    except Exception as e:
        status["checks"]["database"] = f"error: {str(e)}"
        status["status"] = "unhealthy"

    # Redis check (Celery broker)
    try:
        r = redis.from_url(settings.redis_url)
        r.ping()
        status["checks"]["redis"] = "ok"
    except Exception as e:
        status["checks"]["redis"] = f"error: {str(e)}"
        status["status"] = "unhealthy"

    # Lock directory must be writable for imports to start
    lock_path = Path(settings.lock_dir)
    if lock_path.is_dir() or not lock_path.exists():
        status["checks"]["lock_dir"] = "ok"
    else:
        status["checks"]["lock_dir"] = "not a directory"
        status["status"] = "degraded"

    # Artist catalogs are optional; without them nothing is matched
    catalog_path = Path(settings.artist_catalog_dir)
    if catalog_path.exists() and catalog_path.is_dir():
        status["checks"]["artist_catalogs"] = "ok"
    else:
        status["checks"]["artist_catalogs"] = "not accessible"
        if status["status"] == "healthy":
            status["status"] = "degraded"

    return status


@router.get("/ready")
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check - is the service ready to handle requests?

    Used by Kubernetes/orchestrators to determine if traffic can be routed.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True}
    except Exception:
        return {"ready": False}


@router.get("/live")
def liveness_check():
    """
    Liveness check - is the process alive?

    Simple check that the application is running.
    """
    return {"alive": True, "version": __version__}
