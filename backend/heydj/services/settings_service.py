"""Settings service - DJ preferences that shape the attendee page"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.db.helpers import get_user_settings, set_user_setting

logger = logging.getLogger(__name__)

CATEGORY = "global"
THEMES = ("dark", "light")


def default_settings() -> Dict[str, Any]:
    return {
        "theme": "dark",
        "show_vote_count": True,
        "request_limit": settings.DEFAULT_REQUEST_LIMIT,
    }


def get_dj_settings(user_id: str, db: Session) -> Dict[str, Any]:
    """Stored settings layered over the defaults"""
    stored = get_user_settings(user_id, CATEGORY, db=db)
    merged = default_settings()
    merged.update({k: v for k, v in stored.items() if k in merged})
    return merged


def get_request_limit(dj_id: str, db: Session) -> int:
    return int(get_dj_settings(dj_id, db)["request_limit"])


def validate_settings_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """Check a partial update; returns only the keys that were provided"""
    updates = {}

    theme = data.get("theme")
    if theme is not None:
        if theme not in THEMES:
            raise ValueError(f"Invalid theme: {theme}")
        updates["theme"] = theme

    show_vote_count = data.get("show_vote_count")
    if show_vote_count is not None:
        updates["show_vote_count"] = bool(show_vote_count)

    request_limit = data.get("request_limit")
    if request_limit is not None:
        if not 1 <= int(request_limit) <= settings.MAX_REQUEST_LIMIT:
            raise ValueError(f"Request limit must be between 1 and {settings.MAX_REQUEST_LIMIT}")
        updates["request_limit"] = int(request_limit)

    return updates


def update_dj_settings(user_id: str, data: Dict[str, Any], db: Session) -> Dict[str, Any]:
    updates = validate_settings_update(data)
    for key, value in updates.items():
        set_user_setting(user_id, CATEGORY, key, value, db=db)
    if updates:
        logger.info(f"User {user_id} updated settings: {sorted(updates)}")
    return get_dj_settings(user_id, db)
