"""Billing routes mounted at the root, where the frontend and Stripe expect them"""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.core.errors import http_status_for
from heydj.core.security import require_csrf
from heydj.db.session import get_db
from heydj.schemas.subscriptions import (
    CheckoutRequest, StartTrialRequest, CancelSubscriptionRequest, CheckUserExistsRequest
)
from heydj.services import subscription_service

router = APIRouter(tags=["billing"])
logger = logging.getLogger(__name__)


def _require_same_user(session_user_id: str, body_user_id: str) -> None:
    if session_user_id != body_user_id:
        raise HTTPException(403, "Cannot act on behalf of another user")


@router.post("/create-checkout-session")
def create_checkout_session(
    checkout_request: CheckoutRequest,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Create a one-time Stripe checkout session for Pro"""
    _require_same_user(user_id, checkout_request.user_id)
    try:
        return subscription_service.create_checkout(
            user_id,
            checkout_request.plan,
            checkout_request.period,
            checkout_request.email,
            db
        )
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
    except Exception as e:
        logger.error(f"Error creating checkout session for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to create checkout session")


@router.post("/start-trial")
def start_trial(
    trial_request: StartTrialRequest,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Start the free trial through a subscription checkout"""
    _require_same_user(user_id, trial_request.user_id)
    try:
        return subscription_service.start_trial(user_id, trial_request.email, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
    except Exception as e:
        logger.error(f"Error starting trial for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to start trial")


@router.post("/cancel-subscription")
def cancel_subscription(
    cancel_request: CancelSubscriptionRequest,
    user_id: str = Depends(require_csrf),
    db: Session = Depends(get_db)
):
    """Cancel at period end; access continues until the plan expires"""
    _require_same_user(user_id, cancel_request.user_id)
    try:
        return subscription_service.cancel_subscription(user_id, db)
    except ValueError as e:
        raise HTTPException(http_status_for(e), str(e))
    except Exception as e:
        logger.error(f"Error cancelling subscription for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to cancel subscription")


@router.post("/check-user-exists")
def check_user_exists(check_request: CheckUserExistsRequest, db: Session = Depends(get_db)):
    return {"userExists": subscription_service.check_user_exists(check_request.email, db)}


@router.post("/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Stripe webhook events

    The body must stay raw bytes for signature verification.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(400, "Missing stripe-signature header")

    try:
        return subscription_service.process_stripe_webhook(payload, sig_header, db)
    except ValueError as e:
        logger.error(f"Rejected webhook: {e}")
        raise HTTPException(400, str(e))


@router.post("/downgrade-expired")
def downgrade_expired(
    db: Session = Depends(get_db),
    x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret")
):
    """Run the expiry sweep (called by cron)"""
    if settings.CRON_SECRET and not (x_cron_secret and secrets.compare_digest(x_cron_secret, settings.CRON_SECRET)):
        raise HTTPException(403, "Invalid cron secret")

    try:
        downgraded = subscription_service.downgrade_expired_users(db)
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"message": "Failed"})

    return {"message": "Downgrade completed", "downgraded": downgraded}
