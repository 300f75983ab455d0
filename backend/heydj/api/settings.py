"""DJ settings and profile API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from heydj.core.errors import http_status_for
from heydj.core.security import require_auth, require_csrf
from heydj.db.session import get_db
from heydj.schemas.settings import DJSettingsUpdate, ProfileUpdate
from heydj.services import settings_service, profile_service

router = APIRouter(prefix="/api", tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("/settings")
def get_settings(user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    """Theme, vote count visibility and attendee request limit"""
    return settings_service.get_dj_settings(user_id, db)


@router.patch("/settings")
def update_settings(
    settings_update: DJSettingsUpdate,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    try:
        return settings_service.update_dj_settings(user_id, settings_update.model_dump(exclude_unset=True), db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.get("/profile")
def get_profile(user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        return profile_service.get_profile(user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.patch("/profile")
def update_profile(
    profile_update: ProfileUpdate,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    try:
        return profile_service.update_profile(user_id, profile_update.model_dump(exclude_unset=True), db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
