"""Queue service - turns raw song request rows into the DJ's queue view

Duplicate submissions of the same (title, artist) pair are merged into one
entry. Pending entries get a 1-based queue position: DJ-saved order first,
then descending votes. Played and rejected entries are listed separately.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from heydj.core.errors import NotFoundError
from heydj.models.event import Event
from heydj.models.song_request import SongRequest

logger = logging.getLogger(__name__)

PENDING = "pending"
PLAYED = "played"
REJECTED = "rejected"
STATUSES = (PENDING, PLAYED, REJECTED)


@dataclass
class QueueEntry:
    id: str
    event_id: str
    title: str
    artist: str
    votes: int
    request_count: int
    status: str
    song_link: Optional[str] = None
    created_at: Optional[datetime] = None
    manual_position: Optional[int] = None
    queue_position: Optional[int] = None
    request_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data


@dataclass
class QueueView:
    queue: List[QueueEntry]
    played: List[QueueEntry]
    rejected: List[QueueEntry]

    def to_dict(self) -> Dict:
        return {
            "queue": [e.to_dict() for e in self.queue],
            "played": [e.to_dict() for e in self.played],
            "rejected": [e.to_dict() for e in self.rejected],
        }


def derive_status(row) -> str:
    """played takes precedence over rejected"""
    if row.played:
        return PLAYED
    if row.rejected:
        return REJECTED
    return PENDING


def group_key(row) -> Tuple[str, str]:
    """Exact, case-sensitive match; no normalization"""
    return (row.title, row.artist)


def aggregate_requests(rows: Iterable) -> List[QueueEntry]:
    """Merge duplicate (title, artist) rows, keeping first-seen order.

    The first row of a group is its representative: its id, status, link and
    saved position stand for the whole group.
    """
    groups: Dict[Tuple[str, str], QueueEntry] = {}
    for row in rows:
        key = group_key(row)
        entry = groups.get(key)
        if entry is None:
            groups[key] = QueueEntry(
                id=row.id,
                event_id=row.event_id,
                title=row.title,
                artist=row.artist,
                votes=row.votes or 0,
                request_count=1,
                status=derive_status(row),
                song_link=row.song_link,
                created_at=row.created_at,
                manual_position=row.manual_position,
                request_ids=[row.id],
            )
        else:
            entry.votes += row.votes or 0
            entry.request_count += 1
            entry.request_ids.append(row.id)
    return list(groups.values())


def _pending_order(entries: Sequence[QueueEntry]) -> List[QueueEntry]:
    by_votes = sorted(entries, key=lambda e: -e.votes)
    pinned = sorted((e for e in by_votes if e.manual_position is not None), key=lambda e: e.manual_position)
    unpinned = [e for e in by_votes if e.manual_position is None]
    return pinned + unpinned


def build_queue(rows: Iterable) -> QueueView:
    """Aggregate rows and assign queue positions to pending entries"""
    entries = aggregate_requests(rows)

    pending = _pending_order([e for e in entries if e.status == PENDING])
    for position, entry in enumerate(pending, start=1):
        entry.queue_position = position

    played = sorted((e for e in entries if e.status == PLAYED), key=lambda e: -e.votes)
    rejected = sorted((e for e in entries if e.status == REJECTED), key=lambda e: -e.votes)
    return QueueView(queue=pending, played=played, rejected=rejected)


# ============================================================================
# DB-BACKED OPERATIONS
# ============================================================================

def get_owned_event(event_id: str, dj_id: str, db: Session) -> Event:
    """Fetch an event, treating someone else's event as missing"""
    event = db.query(Event).filter(Event.id == event_id, Event.dj_id == dj_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def load_event_rows(event_id: str, db: Session) -> List[SongRequest]:
    """Rows in a deterministic input order for aggregation"""
    return (
        db.query(SongRequest)
        .filter(SongRequest.event_id == event_id)
        .order_by(SongRequest.votes.desc(), SongRequest.created_at.asc(), SongRequest.id.asc())
        .all()
    )


def get_event_queue(event_id: str, dj_id: str, db: Session) -> QueueView:
    get_owned_event(event_id, dj_id, db)
    return build_queue(load_event_rows(event_id, db))


def _group_rows(song: SongRequest, db: Session) -> List[SongRequest]:
    return (
        db.query(SongRequest)
        .filter(
            SongRequest.event_id == song.event_id,
            SongRequest.title == song.title,
            SongRequest.artist == song.artist,
        )
        .all()
    )


def set_song_status(song_id: str, status: str, dj_id: str, db: Session) -> Dict:
    """Mark a song (and any duplicate rows of it) pending, played or rejected"""
    if status not in STATUSES:
        raise ValueError(f"Invalid status: {status}")

    song = db.query(SongRequest).filter(SongRequest.id == song_id).first()
    if not song:
        raise NotFoundError("Song request not found")
    get_owned_event(song.event_id, dj_id, db)

    rows = _group_rows(song, db)
    for row in rows:
        row.played = status == PLAYED
        row.rejected = status == REJECTED
        if status != PENDING:
            row.manual_position = None
    db.commit()

    logger.info(f"Song '{song.title}' by {song.artist} in event {song.event_id} marked {status} ({len(rows)} row(s))")
    return {"id": song.id, "status": status, "updated": len(rows)}


def reorder_queue(event_id: str, ordered_ids: List[str], dj_id: str, db: Session) -> QueueView:
    """Persist the DJ's drag-and-drop order for pending songs"""
    get_owned_event(event_id, dj_id, db)
    rows = load_event_rows(event_id, db)

    pending_groups: Dict[str, List[SongRequest]] = {}
    by_key: Dict[Tuple[str, str], List[SongRequest]] = {}
    for row in rows:
        if derive_status(row) == PENDING:
            by_key.setdefault(group_key(row), []).append(row)
    for group in by_key.values():
        for row in group:
            pending_groups[row.id] = group

    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValueError("Duplicate song ids in ordering")
    unknown = [song_id for song_id in ordered_ids if song_id not in pending_groups]
    if unknown:
        raise ValueError(f"Not a pending song in this event: {unknown[0]}")

    for group in by_key.values():
        for row in group:
            row.manual_position = None
    for position, song_id in enumerate(ordered_ids, start=1):
        for row in pending_groups[song_id]:
            row.manual_position = position
    db.commit()

    return build_queue(load_event_rows(event_id, db))


def clear_queue_order(event_id: str, dj_id: str, db: Session) -> QueueView:
    """Drop the saved order so the queue falls back to vote order"""
    get_owned_event(event_id, dj_id, db)
    db.query(SongRequest).filter(SongRequest.event_id == event_id).update(
        {SongRequest.manual_position: None}, synchronize_session=False
    )
    db.commit()
    return build_queue(load_event_rows(event_id, db))
