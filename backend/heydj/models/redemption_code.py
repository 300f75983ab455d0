"""RedemptionCode model"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from heydj.models.base import Base, utcnow


class RedemptionCode(Base):
    """Single-use entitlement codes (e.g. lifetime access), validated server-side"""
    __tablename__ = "redemption_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    plan = Column(String(20), default="lifetime", nullable=False)
    redeemed_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
