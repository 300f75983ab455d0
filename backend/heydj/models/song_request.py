"""SongRequest model"""
from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from heydj.models.base import Base, new_id, utcnow


class SongRequest(Base):
    """A song requested by attendees for an event"""
    __tablename__ = "song_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    artist = Column(String(100), nullable=False)
    votes = Column(Integer, default=1, nullable=False)
    played = Column(Boolean, default=False, nullable=False)
    rejected = Column(Boolean, default=False, nullable=False)
    song_link = Column(String(500), nullable=True)
    manual_position = Column(Integer, nullable=True)  # DJ drag-and-drop order; NULL = vote order
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    event = relationship("Event", back_populates="song_requests")
    song_votes = relationship("SongVote", back_populates="song_request", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_song_requests_event_title_artist', 'event_id', 'title', 'artist'),
        CheckConstraint("votes >= 0", name="ck_song_requests_votes_non_negative"),
    )
