"""Notification API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from heydj.core.errors import http_status_for
from heydj.core.security import require_auth, require_csrf
from heydj.db.session import get_db
from heydj.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)


@router.get("")
def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(notification_service.DEFAULT_PER_PAGE, ge=1, le=notification_service.MAX_PER_PAGE),
    user_id: str = Depends(require_auth),
    db: Session = Depends(get_db)
):
    return notification_service.list_notifications(user_id, db, page=page, per_page=per_page)


@router.post("/read-all")
def mark_all_read(user_id: str = Depends(require_csrf), db: Session = Depends(get_db)):
    return {"updated": notification_service.mark_all_read(user_id, db)}


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, user_id: str = Depends(require_csrf), db: Session = Depends(get_db)):
    try:
        return notification_service.mark_notification_read(notification_id, user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
