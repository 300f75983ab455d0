"""Database helper functions for per-DJ settings and user lookups"""
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from heydj.db.redis import get_cached_settings, set_cached_settings, invalidate_settings_cache
from heydj.models.setting import Setting
from heydj.models.user import User

logger = logging.getLogger(__name__)


def get_user_by_id(user_id: str, db: Session) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(email: str, db: Session) -> Optional[User]:
    """Case-insensitive email lookup"""
    if not email:
        return None
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_user_settings(user_id: str, category: str, db: Session) -> Dict[str, Any]:
    """Get user settings by category. Uses Redis caching with 5 minute TTL."""
    try:
        cached = get_cached_settings(user_id, category)
    except Exception as e:
        logger.warning(f"Settings cache read failed for user {user_id}: {e}")
        cached = None
    if cached is not None:
        return cached

    rows = db.query(Setting).filter(
        Setting.user_id == user_id,
        Setting.category == category
    ).all()

    settings_dict = {}
    for row in rows:
        try:
            settings_dict[row.key] = json.loads(row.value)
        except (json.JSONDecodeError, TypeError):
            settings_dict[row.key] = row.value

    try:
        set_cached_settings(user_id, category, settings_dict)
    except Exception as e:
        logger.warning(f"Settings cache write failed for user {user_id}: {e}")

    return settings_dict


def set_user_setting(user_id: str, category: str, key: str, value: Any, db: Session) -> None:
    """Create or update one setting. The value is stored JSON-encoded."""
    row = db.query(Setting).filter(
        Setting.user_id == user_id,
        Setting.category == category,
        Setting.key == key
    ).first()

    value_str = json.dumps(value)
    if row:
        row.value = value_str
    else:
        db.add(Setting(user_id=user_id, category=category, key=key, value=value_str))

    db.commit()
    invalidate_settings_cache(user_id, category)
