"""Subscription status and redemption routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.core.errors import http_status_for
from heydj.core.security import require_auth, require_csrf
from heydj.db.session import get_db
from heydj.schemas.subscriptions import RedeemCodeRequest
from heydj.services import subscription_service

router = APIRouter(prefix="/api/subscription", tags=["subscriptions"])
logger = logging.getLogger(__name__)


@router.get("/status")
def get_status(user_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    """Current plan, expiry and feature set"""
    try:
        return subscription_service.get_plan_status(user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


@router.post("/redeem")
def redeem_code(
    redeem_request: RedeemCodeRequest,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Redeem a single-use access code"""
    try:
        return subscription_service.redeem_code(user_id, redeem_request.code, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))


# ============================================================================
# STRIPE CONFIG ROUTE (separate router for /api/stripe)
# ============================================================================

stripe_router = APIRouter(prefix="/api/stripe", tags=["stripe"])


@stripe_router.get("/config")
def get_stripe_config():
    """Get Stripe publishable key for frontend"""
    publishable_key = settings.STRIPE_PUBLISHABLE_KEY
    if not publishable_key:
        raise HTTPException(500, "Stripe not configured")
    return {"publishable_key": publishable_key}
