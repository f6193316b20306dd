"""API routes."""
from fastapi import APIRouter
from liveloader.api import imports

api_router = APIRouter()

# Imports, catalog maintenance, audit
api_router.include_router(imports.router, tags=["imports"])
