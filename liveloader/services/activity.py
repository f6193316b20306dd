"""Activity logging service."""
import logging
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from liveloader.models.activity import ActivityLog

logger = logging.getLogger(__name__)


class ActivityService:
    """Records destructive catalog operations and job control actions."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        actor: str,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> ActivityLog:
        """Log an activity. With commit=False the row joins the caller's transaction."""
        activity = ActivityLog(
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
        )
        self.db.add(activity)
        if commit:
            self.db.commit()
            self.db.refresh(activity)
        logger.info(f"Activity: {actor} {action} {entity_type or ''} {entity_id or ''}".rstrip())
        return activity

    def recent(self, limit: int = 50, action: Optional[str] = None) -> List[ActivityLog]:
        query = self.db.query(ActivityLog)
        if action:
            query = query.filter(ActivityLog.action == action)
        return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
