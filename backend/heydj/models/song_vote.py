"""SongVote model"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from heydj.models.base import Base, utcnow


class SongVote(Base):
    """One attendee's vote on one song request"""
    __tablename__ = "song_votes"

    id = Column(Integer, primary_key=True, index=True)
    song_request_id = Column(String(36), ForeignKey("song_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    attendee_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    song_request = relationship("SongRequest", back_populates="song_votes")

    __table_args__ = (
        UniqueConstraint('song_request_id', 'attendee_id', name='uq_song_votes_song_attendee'),
    )
