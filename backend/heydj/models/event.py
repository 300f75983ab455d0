"""Event model"""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from heydj.models.base import Base, new_id, utcnow


class Event(Base):
    """A DJ gig that attendees request songs for"""
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    dj_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    start_time = Column(String(20), nullable=True)  # wall-clock "HH:MM" as entered by the DJ
    end_time = Column(String(20), nullable=True)
    location = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    dj = relationship("User", back_populates="events")
    song_requests = relationship("SongRequest", back_populates="event", cascade="all, delete-orphan")
