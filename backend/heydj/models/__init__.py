"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from heydj.models.base import Base
from heydj.models.user import User
from heydj.models.event import Event
from heydj.models.song_request import SongRequest
from heydj.models.song_vote import SongVote
from heydj.models.notification import Notification
from heydj.models.setting import Setting
from heydj.models.stripe_event import StripeEvent
from heydj.models.redemption_code import RedemptionCode

__all__ = [
    "Base", "User", "Event", "SongRequest", "SongVote",
    "Notification", "Setting", "StripeEvent", "RedemptionCode"
]
