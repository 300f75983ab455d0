"""Dashboard service - summary numbers for the DJ home page"""
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from heydj.models.event import Event
from heydj.models.song_request import SongRequest
from heydj.services.event_service import serialize_event

TOP_REQUESTS_LIMIT = 5
RECENT_EVENTS_LIMIT = 5


def _top_requests(db: Session, dj_id: str = None) -> List[Dict]:
    query = (
        db.query(SongRequest, Event.name)
        .join(Event, Event.id == SongRequest.event_id)
    )
    if dj_id is not None:
        query = query.filter(Event.dj_id == dj_id)
    rows = (
        query.order_by(SongRequest.votes.desc(), SongRequest.created_at.asc())
        .limit(TOP_REQUESTS_LIMIT)
        .all()
    )
    return [
        {
            "id": song.id,
            "title": song.title,
            "artist": song.artist,
            "votes": song.votes,
            "event_name": event_name,
        }
        for song, event_name in rows
    ]


def get_dashboard(dj_id: str, db: Session) -> Dict:
    events = (
        db.query(Event)
        .filter(Event.dj_id == dj_id)
        .order_by(Event.created_at.desc())
        .all()
    )
    event_ids = [e.id for e in events]

    counts = {}
    if event_ids:
        counts = dict(
            db.query(SongRequest.event_id, func.count(SongRequest.id))
            .filter(SongRequest.event_id.in_(event_ids))
            .group_by(SongRequest.event_id)
            .all()
        )

    return {
        "active_events": sum(1 for e in events if e.active),
        "total_requests": sum(counts.values()),
        "requests_by_event": [
            {
                "event_id": e.id,
                "event_name": e.name,
                "event_date": e.created_at.isoformat() if e.created_at else None,
                "total_requests": counts.get(e.id, 0),
                "active": e.active,
            }
            for e in events
        ],
        # Across all DJs
        "top_requests_all": _top_requests(db),
        "top_requests_mine": _top_requests(db, dj_id=dj_id),
        "recent_events": [serialize_event(e, counts.get(e.id, 0)) for e in events[:RECENT_EVENTS_LIMIT]],
    }
