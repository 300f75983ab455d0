"""Notification service - in-app messages for DJs"""
import logging
import math
from typing import Dict

from sqlalchemy.orm import Session

from heydj.core.errors import NotFoundError
from heydj.models.notification import Notification

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


def create_notification(user_id: str, title: str, message: str, db: Session, commit: bool = True) -> Notification:
    """Insert a notification. Pass commit=False to batch it into the caller's transaction."""
    notification = Notification(user_id=user_id, title=title, message=message, read=False)
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    return notification


def serialize_notification(notification: Notification) -> Dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "read": notification.read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


def list_notifications(user_id: str, db: Session, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> Dict:
    """Newest first, paginated"""
    page = max(page, 1)
    per_page = min(max(per_page, 1), MAX_PER_PAGE)

    query = db.query(Notification).filter(Notification.user_id == user_id)
    total = query.count()
    unread = query.filter(Notification.read.is_(False)).count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return {
        "notifications": [serialize_notification(n) for n in items],
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": math.ceil(total / per_page) if total else 0,
        "unread": unread,
    }


def mark_notification_read(notification_id: str, user_id: str, db: Session) -> Dict:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    notification.read = True
    db.commit()
    return serialize_notification(notification)


def mark_all_read(user_id: str, db: Session) -> int:
    updated = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False)
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()
    return updated
