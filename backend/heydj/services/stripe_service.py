"""Stripe service - all direct calls into the Stripe API and the webhook event log"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.core.errors import WebhookSignatureError
from heydj.models.stripe_event import StripeEvent

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY

PRODUCT_NAME = "Hey DJ Pro"


def price_for_period(period: str) -> int:
    """Price in cents for a pro billing period"""
    if period == "monthly":
        return settings.PRO_MONTHLY_PRICE_CENTS
    if period == "yearly":
        return settings.PRO_YEARLY_PRICE_CENTS
    raise ValueError("Invalid plan or billing period")


# ============================================================================
# CHECKOUT
# ============================================================================

def create_payment_checkout_session(
    user_id: str,
    email: str,
    plan: str,
    period: str,
    success_url: str,
    cancel_url: str,
    customer_id: Optional[str] = None,
) -> Dict:
    """One-time payment checkout for a pro period"""
    amount = price_for_period(period)

    checkout_params = {
        "payment_method_types": ["card"],
        "mode": "payment",
        "line_items": [{
            "price_data": {
                "currency": settings.CURRENCY,
                "product_data": {"name": f"{PRODUCT_NAME} ({period})"},
                "unit_amount": amount,
            },
            "quantity": 1,
        }],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": {"userId": user_id, "plan": plan, "period": period, "email": email},
    }
    if customer_id:
        checkout_params["customer"] = customer_id
    elif email:
        checkout_params["customer_email"] = email

    session = stripe.checkout.Session.create(**checkout_params)
    return {"id": session.id, "url": session.url}


def create_trial_checkout_session(
    user_id: str,
    email: str,
    success_url: str,
    cancel_url: str,
    customer_id: Optional[str] = None,
) -> Dict:
    """Subscription-mode checkout that starts with a free trial"""
    checkout_params = {
        "payment_method_types": ["card"],
        "mode": "subscription",
        "line_items": [{
            "price_data": {
                "currency": settings.CURRENCY,
                "product_data": {"name": f"{PRODUCT_NAME} (monthly)"},
                "unit_amount": settings.PRO_MONTHLY_PRICE_CENTS,
                "recurring": {"interval": "month"},
            },
            "quantity": 1,
        }],
        "subscription_data": {
            "trial_period_days": settings.TRIAL_DAYS,
            "metadata": {"userId": user_id, "plan": "trial"},
        },
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": {"userId": user_id, "plan": "trial", "period": "weekly", "email": email},
    }
    if customer_id:
        checkout_params["customer"] = customer_id
    elif email:
        checkout_params["customer_email"] = email

    session = stripe.checkout.Session.create(**checkout_params)
    return {"id": session.id, "url": session.url}


def cancel_at_period_end(subscription_id: str):
    return stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)


def cancel_subscription_now(subscription_id: str) -> bool:
    """End a subscription immediately so Stripe stops billing. False if Stripe refused."""
    try:
        stripe.Subscription.cancel(subscription_id)
        return True
    except stripe.StripeError as e:
        logger.error(f"Failed to cancel Stripe subscription {subscription_id}: {e}")
        return False


# ============================================================================
# WEBHOOK & EVENT LOGGING
# ============================================================================

def construct_webhook_event(payload: bytes, sig_header: str):
    """Verify the signature and parse the event; WebhookSignatureError on any failure"""
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("Webhook secret not configured")
        raise WebhookSignatureError("Webhook secret not configured")

    try:
        return stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid webhook signature: {e}")
        raise WebhookSignatureError("Invalid signature")
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise WebhookSignatureError("Invalid payload")


def log_stripe_event(event_id: str, event_type: str, payload: Any, db: Session) -> StripeEvent:
    stripe_event = db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first()
    if not stripe_event:
        stripe_event = StripeEvent(
            stripe_event_id=event_id,
            event_type=event_type,
            payload=_to_plain(payload),
            processed=False
        )
        db.add(stripe_event)
        db.commit()
        db.refresh(stripe_event)
    return stripe_event


def mark_stripe_event_processed(event_id: str, db: Session, error_message: str = None):
    stripe_event = db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first()
    if stripe_event:
        stripe_event.processed = True
        stripe_event.processed_at = datetime.now(timezone.utc)
        stripe_event.error_message = error_message
        db.commit()


# ============================================================================
# STRIPE OBJECT ACCESS HELPERS
# ============================================================================

def _to_plain(obj: Any) -> Any:
    """StripeObject -> plain dict so it can be stored as JSON"""
    to_dict = getattr(obj, "to_dict_recursive", None) or getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return obj


def get_stripe_value(obj: Any, key: str, default=None):
    """Safely extract value from Stripe object (supports both dict and attribute access)."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(key, default)
        return default if value is None else value
    value = getattr(obj, key, None)
    return default if value is None else value
