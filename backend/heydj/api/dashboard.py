"""Dashboard API route"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from heydj.core.security import require_auth
from heydj.db.session import get_db
from heydj.services.dashboard_service import get_dashboard

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("")
def dashboard(user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    return get_dashboard(user_id, db)
