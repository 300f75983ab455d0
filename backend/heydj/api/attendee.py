"""Public attendee API routes (no login; identified by the attendee cookie)"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from heydj.core.errors import http_status_for
from heydj.core.security import get_attendee_id
from heydj.db.session import get_db
from heydj.schemas.attendee import SongRequestCreate
from heydj.services import request_service

router = APIRouter(prefix="/api/public", tags=["attendee"])
logger = logging.getLogger(__name__)


@router.get("/events/{event_id}")
def get_event(
    event_id: str,
    attendee_id: str = Depends(get_attendee_id),
    db: Session = Depends(get_db)
):
    """Event, DJ profile, songs and the attendee's remaining quota"""
    try:
        return request_service.get_public_event(event_id, attendee_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.post("/events/{event_id}/requests")
def submit_request(
    event_id: str,
    song_request: SongRequestCreate,
    attendee_id: str = Depends(get_attendee_id),
    db: Session = Depends(get_db)
):
    """Request a song, or upvote it if it was already requested"""
    try:
        return request_service.submit_request(
            event_id,
            attendee_id,
            song_request.title,
            song_request.artist,
            song_request.song_link,
            db
        )
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.post("/songs/{song_id}/vote")
def toggle_vote(
    song_id: str,
    attendee_id: str = Depends(get_attendee_id),
    db: Session = Depends(get_db)
):
    """Add or remove the attendee's vote"""
    try:
        return request_service.toggle_vote(song_id, attendee_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
