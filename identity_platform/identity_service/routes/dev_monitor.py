"""
Dev Monitor Router - Development-only endpoint for auth event outbox inspection.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models import AuthEventRecord

router = APIRouter(prefix="/dev", tags=["dev-monitor"])
logger = logging.getLogger(__name__)


def is_dev_mode() -> bool:
    return settings.DEV_MODE


@router.get("/event-logs")
def get_event_logs(
    request: Request,
    limit: int = 50,
    event_type: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Get recent auth events from the outbox (development only).

    Args:
        limit: Maximum number of events to return (default 50, max 1000)
        event_type: Filter by event type (optional)
        status: Filter by delivery status (optional)

    Raises:
        404: If DEV_MODE is not enabled
        400: If limit is below 1 or exceeds 1000
    """
    client_ip = request.client.host if request.client else 'unknown'
    if not is_dev_mode():
        logger.warning("Attempt to access /dev/event-logs with DEV_MODE disabled from IP %s", client_ip)
        raise HTTPException(status_code=404, detail="Not found")

    if limit < 1:
        raise HTTPException(status_code=400, detail="Limit must be at least 1")
    if limit > 1000:
        raise HTTPException(status_code=400, detail="Limit cannot exceed 1000 events")

    query = db.query(AuthEventRecord)
    if event_type:
        query = query.filter(AuthEventRecord.event_type == event_type)
    if status:
        query = query.filter(AuthEventRecord.status == status)

    events = query.order_by(AuthEventRecord.created_at.desc()).limit(limit).all()

    logger.info(
        "Dev event logs accessed: limit=%s, event_type=%s, status=%s, results=%s, ip=%s",
        limit, event_type, status, len(events), client_ip
    )
    return [event.to_dict() for event in events]
