"""User model"""
from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON
from sqlalchemy.orm import relationship
from heydj.models.base import Base, new_id, utcnow


class User(Base):
    """DJ accounts (identity lives in the BaaS; profile and plan metadata live here)"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    stripe_customer_id = Column(String(255), nullable=True, index=True)

    # Public DJ profile shown to attendees
    dj_name = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    social_links = Column(JSON, nullable=True)

    # Subscription metadata
    subscription_plan = Column(String(20), default="none", nullable=False, index=True)  # none, trial, pro, lifetime
    subscription_period = Column(String(20), nullable=True)  # weekly, monthly, yearly, lifetime
    subscription_start = Column(DateTime(timezone=True), nullable=True)
    subscription_expires = Column(DateTime(timezone=True), nullable=True, index=True)
    subscription_id = Column(String(255), nullable=True)
    trial_used = Column(Boolean, default=False, nullable=False)
    subscription_cancelled = Column(Boolean, default=False, nullable=False)

    events = relationship("Event", back_populates="dj", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    settings = relationship("Setting", back_populates="user", cascade="all, delete-orphan")
