"""Subscription service - plan lifecycle, checkout, webhooks and the expiry sweep"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from heydj.core.config import settings
from heydj.core.errors import NotFoundError
from heydj.core.metrics import (
    webhook_events_counter, expiry_sweep_runs_counter, subscriptions_downgraded_counter
)
from heydj.db.helpers import get_user_by_id, get_user_by_email
from heydj.db.redis import get_cached_plan, set_cached_plan, invalidate_plan_cache
from heydj.models.base import utcnow, as_utc
from heydj.models.redemption_code import RedemptionCode
from heydj.models.user import User
from heydj.services.notification_service import create_notification
from heydj.services.plan import PlanType, BillingPeriod, compute_expiry, plan_fields, derive_status
from heydj.services.stripe_service import (
    create_payment_checkout_session, create_trial_checkout_session, cancel_at_period_end,
    cancel_subscription_now, construct_webhook_event, log_stripe_event, mark_stripe_event_processed,
    get_stripe_value
)

logger = logging.getLogger(__name__)
billing_logger = logging.getLogger("billing")

CHECKOUT_PERIODS = (BillingPeriod.MONTHLY.value, BillingPeriod.YEARLY.value)

# Codes can grant any paid plan; the period decides when it lapses
REDEMPTION_PERIODS = {
    PlanType.TRIAL: BillingPeriod.WEEKLY,
    PlanType.PRO: BillingPeriod.MONTHLY,
    PlanType.LIFETIME: BillingPeriod.LIFETIME,
}


# ============================================================================
# PLAN STATUS
# ============================================================================

def get_plan_status(user_id: str, db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Authoritative plan snapshot. Raw fields are cached; expiry is derived on every read."""
    now = now or utcnow()

    fields = None
    try:
        fields = get_cached_plan(user_id)
    except Exception as e:
        logger.warning(f"Plan cache read failed for user {user_id}: {e}")

    if fields is None:
        user = get_user_by_id(user_id, db)
        if not user:
            raise NotFoundError("User not found")
        fields = plan_fields(user)
        try:
            set_cached_plan(user_id, fields)
        except Exception as e:
            logger.warning(f"Plan cache write failed for user {user_id}: {e}")

    return derive_status(fields, now)


def _require_user(user_id: str, db: Session) -> User:
    user = get_user_by_id(user_id, db)
    if not user:
        raise NotFoundError("User not found")
    return user


def activate_plan(user: User, plan: PlanType, period: BillingPeriod, now: datetime) -> None:
    """Write plan fields for a freshly started plan (caller commits)"""
    user.subscription_plan = plan.value
    user.subscription_period = period.value
    user.subscription_start = now
    user.subscription_expires = compute_expiry(now, period.value)
    user.subscription_cancelled = False
    if plan == PlanType.TRIAL:
        user.trial_used = True


def clear_plan(user: User) -> None:
    """Back to the free tier (caller commits)"""
    user.subscription_plan = PlanType.NONE.value
    user.subscription_period = None
    user.subscription_start = None
    user.subscription_expires = None
    user.subscription_id = None
    user.subscription_cancelled = False


# ============================================================================
# CHECKOUT
# ============================================================================

def _return_urls() -> Dict[str, str]:
    frontend_url = settings.FRONTEND_URL.rstrip("/")
    return {"success_url": f"{frontend_url}/success", "cancel_url": f"{frontend_url}/failure"}


def create_checkout(user_id: str, plan: str, period: str, email: Optional[str], db: Session) -> Dict:
    """Create a one-time payment checkout session for a pro period"""
    if plan != PlanType.PRO.value or period not in CHECKOUT_PERIODS:
        raise ValueError("Invalid plan or billing period")

    user = _require_user(user_id, db)
    result = create_payment_checkout_session(
        user_id=user.id,
        email=email or user.email,
        plan=plan,
        period=period,
        customer_id=user.stripe_customer_id,
        **_return_urls()
    )
    billing_logger.info(f"Checkout session {result['id']} created - User: {user.id}, Plan: {plan}/{period}")
    return result


def start_trial(user_id: str, email: Optional[str], db: Session) -> Dict:
    """Create a subscription checkout with a free trial. Each account gets one trial."""
    user = _require_user(user_id, db)
    if user.trial_used:
        raise ValueError("Free trial has already been used")

    result = create_trial_checkout_session(
        user_id=user.id,
        email=email or user.email,
        customer_id=user.stripe_customer_id,
        **_return_urls()
    )
    billing_logger.info(f"Trial checkout session {result['id']} created - User: {user.id}")
    return {"url": result["url"]}


# ============================================================================
# WEBHOOK HANDLERS
# ============================================================================

def _user_for_session(session: Any, db: Session) -> Optional[User]:
    metadata = get_stripe_value(session, "metadata", {}) or {}
    user_id = get_stripe_value(metadata, "userId")
    if user_id:
        user = get_user_by_id(user_id, db)
        if user:
            return user

    email = get_stripe_value(metadata, "email")
    if not email:
        details = get_stripe_value(session, "customer_details", {})
        email = get_stripe_value(details, "email") or get_stripe_value(session, "customer_email")
    return get_user_by_email(email, db)


def handle_checkout_completed(session: Any, db: Session, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    metadata = get_stripe_value(session, "metadata", {}) or {}

    user = _user_for_session(session, db)
    if not user:
        raise ValueError(f"No user found for checkout session {get_stripe_value(session, 'id')}")

    plan = PlanType.parse(get_stripe_value(metadata, "plan"))
    if plan == PlanType.TRIAL:
        period = BillingPeriod.WEEKLY
    elif plan == PlanType.PRO:
        period = BillingPeriod(get_stripe_value(metadata, "period", BillingPeriod.MONTHLY.value))
    else:
        raise ValueError(f"Unsupported plan in checkout metadata: {plan.value}")

    activate_plan(user, plan, period, now)
    subscription_id = get_stripe_value(session, "subscription")
    if subscription_id:
        user.subscription_id = subscription_id
    customer_id = get_stripe_value(session, "customer")
    if customer_id:
        user.stripe_customer_id = customer_id

    label = "free trial" if plan == PlanType.TRIAL else f"Pro ({period.value})"
    create_notification(
        user.id,
        "Subscription Activated",
        f"Your {label} is now active. Thanks for supporting Hey DJ!",
        db,
        commit=False
    )
    db.commit()
    invalidate_plan_cache(user.id)
    billing_logger.info(f"Plan activated - User: {user.id}, Plan: {plan.value}, Period: {period.value}")


def handle_checkout_expired(session: Any, db: Session) -> None:
    user = _user_for_session(session, db)
    if not user:
        logger.info(f"Checkout session {get_stripe_value(session, 'id')} expired for unknown user")
        return
    create_notification(
        user.id,
        "Checkout Expired",
        "Your checkout session expired before payment was completed. You can start a new one any time.",
        db
    )


def handle_async_payment_failed(session: Any, db: Session) -> None:
    user = _user_for_session(session, db)
    if not user:
        logger.warning(f"Payment failed for checkout session {get_stripe_value(session, 'id')} with unknown user")
        return
    create_notification(
        user.id,
        "Payment Failed",
        "We could not process your payment. Please try again or use a different payment method.",
        db
    )


WEBHOOK_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "checkout.session.expired": handle_checkout_expired,
    "checkout.session.async_payment_failed": handle_async_payment_failed,
}


def process_stripe_webhook(payload: bytes, sig_header: str, db: Session) -> Dict[str, Any]:
    """Verify, log and dispatch a webhook event.

    Only signature failures raise; processing errors are recorded on the event
    row and acknowledged so Stripe does not retry.
    """
    event = construct_webhook_event(payload, sig_header)
    event_id = event["id"]
    event_type = event["type"]

    stripe_event = log_stripe_event(event_id, event_type, event, db)
    if stripe_event.processed:
        logger.info(f"Webhook event {event_id} already processed")
        webhook_events_counter.labels(event_type=event_type, status="duplicate").inc()
        return {"received": True}

    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        mark_stripe_event_processed(event_id, db)
        webhook_events_counter.labels(event_type=event_type, status="ignored").inc()
        return {"received": True}

    try:
        handler(event["data"]["object"], db)
        mark_stripe_event_processed(event_id, db)
        webhook_events_counter.labels(event_type=event_type, status="success").inc()
        logger.info(f"Successfully processed webhook event {event_id} of type {event_type}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error processing webhook {event_id}: {e}", exc_info=True)
        mark_stripe_event_processed(event_id, db, error_message=str(e))
        webhook_events_counter.labels(event_type=event_type, status="error").inc()

    return {"received": True}


# ============================================================================
# CANCELLATION & REDEMPTION
# ============================================================================

def cancel_subscription(user_id: str, db: Session) -> Dict[str, Any]:
    """Stop renewal at period end; plan fields stay until the expiry sweep clears them"""
    user = _require_user(user_id, db)
    plan = PlanType.parse(user.subscription_plan)
    if plan not in (PlanType.PRO, PlanType.TRIAL) and not user.subscription_id:
        raise ValueError("No active subscription to cancel")

    canceled = False
    if user.subscription_id:
        cancel_at_period_end(user.subscription_id)
        canceled = True

    user.subscription_cancelled = True
    expires = as_utc(user.subscription_expires)
    until = f" You keep access until {expires.date().isoformat()}." if expires else ""
    create_notification(
        user.id,
        "Subscription Cancelled",
        f"Your subscription has been cancelled.{until}",
        db,
        commit=False
    )
    db.commit()
    invalidate_plan_cache(user.id)

    billing_logger.info(f"Subscription cancelled - User: {user.id}, Stripe subscription cancelled: {canceled}")
    return {"success": True, "canceled": canceled}


def redeem_code(user_id: str, code: str, db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Exchange a single-use code for the plan it grants"""
    now = now or utcnow()
    code = (code or "").strip()
    if not code:
        raise ValueError("Invalid redemption code")

    user = _require_user(user_id, db)
    record = db.query(RedemptionCode).filter(RedemptionCode.code == code).first()
    if not record or PlanType.parse(record.plan) not in REDEMPTION_PERIODS:
        raise ValueError("Invalid redemption code")
    if record.redeemed_by is not None or record.redeemed_at is not None:
        raise ValueError("This code has already been redeemed")

    claimed = db.query(RedemptionCode).filter(
        RedemptionCode.id == record.id,
        RedemptionCode.redeemed_at.is_(None)
    ).update({RedemptionCode.redeemed_by: user.id, RedemptionCode.redeemed_at: now}, synchronize_session=False)
    if not claimed:
        db.rollback()
        raise ValueError("This code has already been redeemed")
    live_subscription = user.subscription_id and not user.subscription_cancelled
    if live_subscription and not cancel_subscription_now(user.subscription_id):
        db.rollback()
        raise ValueError("Could not cancel your current subscription. Please try again.")

    plan = PlanType.parse(record.plan)
    activate_plan(user, plan, REDEMPTION_PERIODS[plan], now)
    user.subscription_id = None

    create_notification(
        user.id,
        "Lifetime Access Activated" if plan == PlanType.LIFETIME else "Subscription Activated",
        "Your code was redeemed successfully. Enjoy Hey DJ!",
        db,
        commit=False
    )
    db.commit()
    invalidate_plan_cache(user.id)

    billing_logger.info(f"Code redeemed - User: {user.id}, Plan: {plan.value}")
    return get_plan_status(user.id, db, now=now)


def check_user_exists(email: Optional[str], db: Session) -> bool:
    return get_user_by_email(email, db) is not None


# ============================================================================
# EXPIRY SWEEP
# ============================================================================

def downgrade_expired_users(db: Session, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> int:
    """Clear every plan whose expiry has passed. Returns the number of users downgraded.

    Pages through candidates in id order so the whole table is covered
    regardless of size. Lifetime plans (no expiry) are never touched.
    """
    now = now or utcnow()
    batch_size = batch_size or settings.EXPIRY_SWEEP_BATCH_SIZE

    downgraded = 0
    last_id = None
    try:
        while True:
            query = db.query(User).filter(
                User.subscription_plan != PlanType.NONE.value,
                User.subscription_expires.isnot(None)
            )
            if last_id is not None:
                query = query.filter(User.id > last_id)
            batch = query.order_by(User.id.asc()).limit(batch_size).all()
            if not batch:
                break
            last_id = batch[-1].id

            expired_ids = []
            for user in batch:
                expires = as_utc(user.subscription_expires)
                if expires is None or expires >= now:
                    continue
                # Stripe bills until the subscription is cancelled; period-end cancels end on their own
                live_subscription = user.subscription_id and not user.subscription_cancelled
                if live_subscription and not cancel_subscription_now(user.subscription_id):
                    billing_logger.error(
                        f"Plan expiry deferred - User: {user.id}, Stripe subscription {user.subscription_id} still active"
                    )
                    continue
                previous = user.subscription_plan
                clear_plan(user)
                create_notification(
                    user.id,
                    "Subscription Expired",
                    "Your subscription has expired and your account is back on the free plan. "
                    "Upgrade any time to unlock unlimited events.",
                    db,
                    commit=False
                )
                expired_ids.append(user.id)
                billing_logger.info(f"Plan expired - User: {user.id}, Previous plan: {previous}")

            db.commit()
            for user_id in expired_ids:
                invalidate_plan_cache(user_id)
            downgraded += len(expired_ids)

            if len(batch) < batch_size:
                break
    except Exception:
        db.rollback()
        expiry_sweep_runs_counter.labels(status="error").inc()
        raise

    subscriptions_downgraded_counter.inc(downgraded)
    expiry_sweep_runs_counter.labels(status="success").inc()
    logger.info(f"Expiry sweep complete: {downgraded} user(s) downgraded")
    return downgraded
