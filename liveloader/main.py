"""liveloader API - Main application entry point."""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from liveloader.api import api_router
from liveloader.api.health import router as health_router
from liveloader import __version__
from liveloader.config import settings
from liveloader.logging_config import setup_logging

# Initialize logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    Path(settings.lock_dir).mkdir(parents=True, exist_ok=True)
    yield
    # Shutdown (nothing needed)


app = FastAPI(
    title="liveloader",
    description="Live concert archive ingestion - import, match, classify",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
# In production, set CORS_ORIGINS env var to your domain(s)
cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")

# Include health routes (not under /api prefix)
app.include_router(health_router)


@app.get("/")
def root():
    """Root endpoint - API info."""
    return {
        "name": "liveloader",
        "version": __version__,
        "docs": "/docs",
    }
