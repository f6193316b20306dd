"""FastAPI dependencies."""
from fastapi import Depends
from sqlalchemy.orm import Session
from liveloader.database import get_db
from liveloader.services.import_management import ImportManagementService


def get_import_service(db: Session = Depends(get_db)) -> ImportManagementService:
    """Import management service bound to the request's session."""
    return ImportManagementService(db)
