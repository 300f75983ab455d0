"""Profile service - the public DJ profile shown on attendee pages"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from heydj.core.errors import NotFoundError
from heydj.db.helpers import get_user_by_id
from heydj.models.base import utcnow
from heydj.services.plan import plan_fields, derive_status

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("dj_name", "avatar_url", "bio", "social_links")


def get_profile(user_id: str, db: Session) -> Dict[str, Any]:
    user = get_user_by_id(user_id, db)
    if not user:
        raise NotFoundError("User not found")
    status = derive_status(plan_fields(user), utcnow())
    return {
        "id": user.id,
        "email": user.email,
        "dj_name": user.dj_name,
        "avatar_url": user.avatar_url,
        "bio": user.bio,
        "social_links": user.social_links or {},
        "pro_badge": status["features"]["pro_badge"],
    }


def update_profile(user_id: str, data: Dict[str, Any], db: Session) -> Dict[str, Any]:
    """Apply a partial profile update; unknown keys are ignored"""
    user = get_user_by_id(user_id, db)
    if not user:
        raise NotFoundError("User not found")

    changed = []
    for field in PROFILE_FIELDS:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = value.strip() or None
            setattr(user, field, value)
            changed.append(field)

    db.commit()
    if changed:
        logger.info(f"User {user_id} updated profile fields: {changed}")
    return get_profile(user_id, db)
