"""Event service - DJ event management and plan-gated creation"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.core.errors import ForbiddenError
from heydj.models.event import Event
from heydj.models.song_request import SongRequest
from heydj.services.plan import PlanType, features_for
from heydj.services.queue_service import get_owned_event
from heydj.services.subscription_service import get_plan_status

logger = logging.getLogger(__name__)

EVENT_LIMIT_MESSAGE = "Event creation limit reached. Please upgrade your plan to create more events."


def share_url(event_id: str) -> str:
    """Public attendee link (also encoded in the event's QR code)"""
    return f"{settings.FRONTEND_URL.rstrip('/')}/event/{event_id}"


def serialize_event(event: Event, request_count: int = 0) -> Dict:
    return {
        "id": event.id,
        "dj_id": event.dj_id,
        "name": event.name,
        "active": event.active,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "location": event.location,
        "created_at": event.created_at.isoformat() if event.created_at else None,
        "request_count": request_count,
        "share_url": share_url(event.id),
    }


def _request_counts(event_ids: List[str], db: Session) -> Dict[str, int]:
    if not event_ids:
        return {}
    rows = (
        db.query(SongRequest.event_id, func.count(SongRequest.id))
        .filter(SongRequest.event_id.in_(event_ids))
        .group_by(SongRequest.event_id)
        .all()
    )
    return {event_id: count for event_id, count in rows}


def list_events(dj_id: str, db: Session) -> List[Dict]:
    """All of the DJ's events, newest first"""
    events = (
        db.query(Event)
        .filter(Event.dj_id == dj_id)
        .order_by(Event.created_at.desc())
        .all()
    )
    counts = _request_counts([e.id for e in events], db)
    return [serialize_event(e, counts.get(e.id, 0)) for e in events]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def create_event(
    dj_id: str,
    name: str,
    db: Session,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    location: Optional[str] = None,
) -> Dict:
    """Create an active event if the DJ's plan allows another one"""
    name = (name or "").strip()
    if not name:
        raise ValueError("Event name is required")

    status = get_plan_status(dj_id, db)
    max_events = features_for(PlanType(status["effective_plan"])).max_events
    if max_events is not None:
        owned = db.query(func.count(Event.id)).filter(Event.dj_id == dj_id).scalar()
        if owned >= max_events:
            logger.info(f"Event limit reached - User: {dj_id}, Plan: {status['effective_plan']}, Events: {owned}")
            raise ForbiddenError(EVENT_LIMIT_MESSAGE)

    event = Event(
        dj_id=dj_id,
        name=name,
        active=True,
        start_time=_clean(start_time),
        end_time=_clean(end_time),
        location=_clean(location),
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info(f"Event created - User: {dj_id}, Event: {event.id}")
    return serialize_event(event)


def get_event(event_id: str, dj_id: str, db: Session) -> Dict:
    event = get_owned_event(event_id, dj_id, db)
    counts = _request_counts([event.id], db)
    return serialize_event(event, counts.get(event.id, 0))


def toggle_event(event_id: str, dj_id: str, db: Session) -> Dict:
    """Open or close an event for requests"""
    event = get_owned_event(event_id, dj_id, db)
    event.active = not event.active
    db.commit()
    logger.info(f"Event {event.id} {'activated' if event.active else 'deactivated'} by {dj_id}")
    counts = _request_counts([event.id], db)
    return serialize_event(event, counts.get(event.id, 0))
