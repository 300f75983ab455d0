"""Request service - attendee song submissions, link validation and voting

Attendees are anonymous; they are identified by an opaque ``attendee_id``
cookie. Per-event request quotas and vote cooldowns live in Redis, votes
themselves live in the song_votes ledger.
"""
import logging
from typing import Dict, List, Optional
from urllib.parse import urlparse

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from heydj.core.config import settings, ALLOWED_LINK_DOMAINS
from heydj.core.errors import NotFoundError, LimitReachedError, EventClosedError
from heydj.core.metrics import song_requests_counter, votes_counter
from heydj.db.redis import (
    get_attendee_request_count, reserve_attendee_request, release_attendee_request,
    acquire_vote_cooldown
)
from heydj.models.event import Event
from heydj.models.song_request import SongRequest
from heydj.models.song_vote import SongVote
from heydj.models.user import User
from heydj.services.settings_service import get_dj_settings, get_request_limit

logger = logging.getLogger(__name__)
attendee_logger = logging.getLogger("attendee")

EVENT_MISSING_MESSAGE = "This event does not exist or has been removed."
EVENT_ENDED_MESSAGE = "This event has ended. No more requests can be made."
INVALID_LINK_MESSAGE = "Please provide a valid YouTube, Spotify, or SoundCloud link"


# ============================================================================
# VALIDATION
# ============================================================================

def validate_song_link(link: Optional[str]) -> Optional[str]:
    """Return the trimmed link (or None when empty); raise ValueError if not allowed.

    The hostname must contain one of the allow-listed music domains.
    """
    if link is None:
        return None
    link = link.strip()
    if not link:
        return None

    try:
        parsed = urlparse(link)
        hostname = parsed.hostname
    except ValueError:
        raise ValueError(INVALID_LINK_MESSAGE)

    if parsed.scheme not in ("http", "https") or not hostname:
        raise ValueError(INVALID_LINK_MESSAGE)
    if not any(domain in hostname for domain in ALLOWED_LINK_DOMAINS):
        raise ValueError(INVALID_LINK_MESSAGE)
    return link


def validate_song_fields(title: Optional[str], artist: Optional[str]) -> tuple:
    """Trim and length-check title and artist"""
    title = (title or "").strip()
    artist = (artist or "").strip()
    if not title:
        raise ValueError("Song title is required")
    if not artist:
        raise ValueError("Artist name is required")
    if len(title) > settings.MAX_SONG_FIELD_LENGTH:
        raise ValueError("Song title is too long")
    if len(artist) > settings.MAX_SONG_FIELD_LENGTH:
        raise ValueError("Artist name is too long")
    return title, artist


# ============================================================================
# EVENT LOOKUP
# ============================================================================

def get_open_event(event_id: str, db: Session) -> Event:
    """Event that is still accepting requests"""
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError(EVENT_MISSING_MESSAGE)
    if not event.active:
        raise EventClosedError(EVENT_ENDED_MESSAGE)
    return event


def serialize_song(song: SongRequest) -> Dict:
    return {
        "id": song.id,
        "event_id": song.event_id,
        "title": song.title,
        "artist": song.artist,
        "votes": song.votes,
        "played": song.played,
        "rejected": song.rejected,
        "song_link": song.song_link,
        "created_at": song.created_at.isoformat() if song.created_at else None,
    }


def _voted_song_ids(event_id: str, attendee_id: str, db: Session) -> List[str]:
    rows = (
        db.query(SongVote.song_request_id)
        .join(SongRequest, SongRequest.id == SongVote.song_request_id)
        .filter(SongRequest.event_id == event_id, SongVote.attendee_id == attendee_id)
        .all()
    )
    return [row[0] for row in rows]


def get_public_event(event_id: str, attendee_id: str, db: Session) -> Dict:
    """Everything the attendee page needs in one payload"""
    event = get_open_event(event_id, db)
    dj = db.query(User).filter(User.id == event.dj_id).first()
    dj_settings = get_dj_settings(event.dj_id, db)

    songs = (
        db.query(SongRequest)
        .filter(SongRequest.event_id == event_id)
        .order_by(SongRequest.votes.desc(), SongRequest.created_at.asc())
        .all()
    )

    limit = int(dj_settings["request_limit"])
    used = get_attendee_request_count(event_id, attendee_id)

    return {
        "event": {
            "id": event.id,
            "name": event.name,
            "active": event.active,
            "start_time": event.start_time,
            "end_time": event.end_time,
            "location": event.location,
        },
        "dj_profile": {
            "dj_name": dj.dj_name if dj else None,
            "avatar_url": dj.avatar_url if dj else None,
            "bio": dj.bio if dj else None,
            "social_links": (dj.social_links or {}) if dj else {},
        },
        "songs": [serialize_song(s) for s in songs],
        "show_vote_count": bool(dj_settings["show_vote_count"]),
        "request_limit": limit,
        "requests_used": used,
        "requests_remaining": max(limit - used, 0),
        "voted_song_ids": _voted_song_ids(event_id, attendee_id, db),
    }


# ============================================================================
# SUBMISSION
# ============================================================================

def _find_duplicate(event_id: str, title: str, artist: str, db: Session) -> Optional[SongRequest]:
    return (
        db.query(SongRequest)
        .filter(
            SongRequest.event_id == event_id,
            SongRequest.title == title,
            SongRequest.artist == artist,
        )
        .order_by(SongRequest.created_at.asc(), SongRequest.id.asc())
        .first()
    )


def submit_request(
    event_id: str,
    attendee_id: str,
    title: Optional[str],
    artist: Optional[str],
    song_link: Optional[str],
    db: Session,
) -> Dict:
    """Submit a song request, or upvote the existing request for the same song.

    Both outcomes use one slot of the attendee's per-event quota.
    """
    event = get_open_event(event_id, db)

    try:
        title, artist = validate_song_fields(title, artist)
        song_link = validate_song_link(song_link)
    except ValueError:
        song_requests_counter.labels(outcome="invalid").inc()
        raise

    limit = get_request_limit(event.dj_id, db)
    used = reserve_attendee_request(event_id, attendee_id, limit)
    if used is None:
        song_requests_counter.labels(outcome="limit_reached").inc()
        attendee_logger.info(f"Request limit reached - Event: {event_id}, Attendee: {attendee_id[:8]}...")
        raise LimitReachedError("Request limit reached")

    try:
        existing = _find_duplicate(event_id, title, artist, db)
        if existing:
            db.query(SongRequest).filter(SongRequest.id == existing.id).update(
                {SongRequest.votes: SongRequest.votes + 1}, synchronize_session=False
            )
            db.commit()
            db.refresh(existing)
            song = existing
        else:
            song = SongRequest(
                event_id=event_id,
                title=title,
                artist=artist,
                song_link=song_link,
                votes=1,
            )
            db.add(song)
            db.commit()
            db.refresh(song)
    except Exception:
        db.rollback()
        release_attendee_request(event_id, attendee_id)
        song_requests_counter.labels(outcome="error").inc()
        raise

    duplicate = existing is not None
    song_requests_counter.labels(outcome="duplicate" if duplicate else "new").inc()
    attendee_logger.info(
        f"Song request {'upvoted' if duplicate else 'created'} - Event: {event_id}, Song: {song.id}, "
        f"Used: {used}/{limit}"
    )
    return {
        "song": serialize_song(song),
        "duplicate": duplicate,
        "requests_remaining": max(limit - used, 0),
    }


# ============================================================================
# VOTING
# ============================================================================

def _increment_votes(song_id: str, db: Session) -> None:
    db.query(SongRequest).filter(SongRequest.id == song_id).update(
        {SongRequest.votes: SongRequest.votes + 1}, synchronize_session=False
    )


def _decrement_votes(song_id: str, db: Session) -> None:
    """Floored at zero"""
    db.query(SongRequest).filter(SongRequest.id == song_id).update(
        {SongRequest.votes: case((SongRequest.votes > 0, SongRequest.votes - 1), else_=0)},
        synchronize_session=False
    )


def toggle_vote(song_id: str, attendee_id: str, db: Session) -> Dict:
    """Add the attendee's vote, or take it back if they already voted"""
    song = db.query(SongRequest).filter(SongRequest.id == song_id).first()
    if not song:
        raise NotFoundError("Song request not found")
    get_open_event(song.event_id, db)

    if not acquire_vote_cooldown(attendee_id, song_id, settings.VOTE_COOLDOWN_MS):
        raise LimitReachedError("Please wait before voting again")

    existing = db.query(SongVote).filter(
        SongVote.song_request_id == song_id,
        SongVote.attendee_id == attendee_id
    ).first()

    if existing:
        db.delete(existing)
        _decrement_votes(song_id, db)
        db.commit()
        voted = False
    else:
        try:
            db.add(SongVote(song_request_id=song_id, attendee_id=attendee_id))
            db.flush()
            _increment_votes(song_id, db)
            db.commit()
            voted = True
        except IntegrityError:
            # A concurrent toggle already recorded this vote
            db.rollback()
            voted = True
            logger.info(f"Duplicate vote ignored - Song: {song_id}, Attendee: {attendee_id[:8]}...")

    db.refresh(song)
    votes_counter.labels(direction="up" if voted else "down").inc()
    return {"song_id": song_id, "votes": song.votes, "voted": voted}
