"""Event and queue API routes for DJs"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from heydj.core.errors import http_status_for
from heydj.core.security import require_auth, require_csrf
from heydj.db.session import get_db
from heydj.schemas.events import EventCreate, SongStatusUpdate, QueueReorderRequest
from heydj.services import event_service, queue_service

router = APIRouter(prefix="/api/events", tags=["events"])
logger = logging.getLogger(__name__)


@router.get("")
def list_events(user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    """List the DJ's events, newest first"""
    return {"events": event_service.list_events(user_id, db)}


@router.post("")
def create_event(
    event_request: EventCreate,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Create a new event (limited by plan)"""
    try:
        return event_service.create_event(
            user_id,
            event_request.name,
            db,
            start_time=event_request.start_time,
            end_time=event_request.end_time,
            location=event_request.location,
        )
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.get("/{event_id}")
def get_event(event_id: str, user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        return event_service.get_event(event_id, user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.post("/{event_id}/toggle")
def toggle_event(event_id: str, user_id: str = Depends(require_csrf), db: Session = Depends(get_db)):
    """Open or close an event for attendee requests"""
    try:
        return event_service.toggle_event(event_id, user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.get("/{event_id}/queue")
def get_queue(event_id: str, user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    """Aggregated queue, played and rejected lists"""
    try:
        return queue_service.get_event_queue(event_id, user_id, db).to_dict()
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.post("/{event_id}/queue/reorder")
def reorder_queue(
    event_id: str,
    reorder_request: QueueReorderRequest,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Save the DJ's manual order for pending songs"""
    try:
        return queue_service.reorder_queue(event_id, reorder_request.ordered_ids, user_id, db).to_dict()
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.delete("/{event_id}/queue/order")
def clear_queue_order(event_id: str, user_id: str = Depends(require_csrf), db: Session = Depends(get_db)):
    """Drop the saved order and fall back to vote order"""
    try:
        return queue_service.clear_queue_order(event_id, user_id, db).to_dict()
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


# ============================================================================
# SONG ROUTES (separate router for /api/songs)
# ============================================================================

songs_router = APIRouter(prefix="/api/songs", tags=["songs"])


@songs_router.patch("/{song_id}/status")
def update_song_status(
    song_id: str,
    status_update: SongStatusUpdate,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Mark a song pending, played or rejected"""
    try:
        return queue_service.set_song_status(song_id, status_update.status, user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
