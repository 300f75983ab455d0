"""Stripe webhook endpoint: verification, dispatch and idempotency"""
from datetime import datetime, timedelta, timezone

import pytest

from heydj.models import Notification, StripeEvent, User
from heydj.models.base import utcnow, as_utc
from heydj.services.subscription_service import handle_checkout_completed
from tests.conftest import FakeSignatureVerificationError

SIGNATURE = {"stripe-signature": "t=1,v1=signature"}


def stripe_event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def checkout_session(user, plan="pro", period="monthly", **extra):
    session = {
        "id": "cs_test123",
        "metadata": {"userId": user.id, "plan": plan, "period": period, "email": user.email},
        "customer": "cus_test123",
    }
    session.update(extra)
    return session


def post_webhook(client):
    return client.post("/webhook", content=b'{"payload": true}', headers=SIGNATURE)


@pytest.mark.critical
class TestWebhookVerification:

    def test_missing_signature_header(self, client):
        response = client.post("/webhook", content=b"{}")
        assert response.status_code == 400

    def test_invalid_signature(self, client, auto_mock_stripe, db_session):
        auto_mock_stripe.Webhook.construct_event.side_effect = FakeSignatureVerificationError("bad signature")

        response = post_webhook(client)

        assert response.status_code == 400
        assert db_session.query(StripeEvent).count() == 0

    def test_malformed_payload(self, client, auto_mock_stripe):
        auto_mock_stripe.Webhook.construct_event.side_effect = ValueError("Invalid JSON")
        assert post_webhook(client).status_code == 400

    def test_unhandled_event_type_is_acknowledged(self, client, db_session):
        response = post_webhook(client)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        logged = db_session.query(StripeEvent).filter(StripeEvent.stripe_event_id == "evt_test123").first()
        assert logged.processed is True
        assert logged.error_message is None


@pytest.mark.critical
class TestCheckoutCompleted:

    def test_pro_monthly_activates_plan(self, client, auto_mock_stripe, db_session, dj_user):
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            "evt_pro", "checkout.session.completed", checkout_session(dj_user)
        )

        before = utcnow()
        response = post_webhook(client)
        assert response.status_code == 200

        user = db_session.query(User).filter(User.id == dj_user.id).first()
        db_session.refresh(user)
        assert user.subscription_plan == "pro"
        assert user.subscription_period == "monthly"
        assert user.stripe_customer_id == "cus_test123"
        assert as_utc(user.subscription_expires) > before + timedelta(days=27)

        titles = [n.title for n in db_session.query(Notification).filter(Notification.user_id == dj_user.id)]
        assert titles == ["Subscription Activated"]

    @pytest.mark.parametrize("period,now,expected", [
        ("monthly", datetime(2024, 1, 31, 18, 0, tzinfo=timezone.utc), datetime(2024, 2, 29, 18, 0, tzinfo=timezone.utc)),
        ("yearly", datetime(2024, 2, 29, 18, 0, tzinfo=timezone.utc), datetime(2025, 2, 28, 18, 0, tzinfo=timezone.utc)),
    ])
    def test_expiry_uses_calendar_months(self, db_session, mock_redis, dj_user, period, now, expected):
        handle_checkout_completed(checkout_session(dj_user, period=period), db_session, now=now)

        db_session.refresh(dj_user)
        assert dj_user.subscription_period == period
        assert as_utc(dj_user.subscription_start) == now
        assert as_utc(dj_user.subscription_expires) == expected

    def test_trial_records_weekly_period(self, client, auto_mock_stripe, db_session, dj_user):
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            "evt_trial", "checkout.session.completed",
            checkout_session(dj_user, plan="trial", period="weekly", subscription="sub_123")
        )

        post_webhook(client)

        db_session.refresh(dj_user)
        assert dj_user.subscription_plan == "trial"
        assert dj_user.subscription_period == "weekly"
        assert dj_user.subscription_id == "sub_123"
        assert dj_user.trial_used is True
        start = as_utc(dj_user.subscription_start)
        assert as_utc(dj_user.subscription_expires) - start == timedelta(days=7)

    def test_user_resolved_by_email_when_metadata_lacks_id(self, client, auto_mock_stripe, db_session, dj_user):
        session = {
            "id": "cs_email",
            "metadata": {"plan": "pro", "period": "yearly"},
            "customer_details": {"email": "DJ@Example.com"},
        }
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            "evt_email", "checkout.session.completed", session
        )

        post_webhook(client)

        db_session.refresh(dj_user)
        assert dj_user.subscription_plan == "pro"
        assert dj_user.subscription_period == "yearly"

    def test_duplicate_delivery_is_processed_once(self, client, auto_mock_stripe, db_session, dj_user):
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            "evt_dup", "checkout.session.completed", checkout_session(dj_user)
        )

        assert post_webhook(client).status_code == 200
        assert post_webhook(client).status_code == 200

        assert db_session.query(StripeEvent).filter(StripeEvent.stripe_event_id == "evt_dup").count() == 1
        assert db_session.query(Notification).filter(Notification.user_id == dj_user.id).count() == 1

    def test_handler_failure_is_recorded_and_acknowledged(self, client, auto_mock_stripe, db_session):
        session = {"id": "cs_orphan", "metadata": {"userId": "no-such-user", "plan": "pro", "period": "monthly"}}
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            "evt_orphan", "checkout.session.completed", session
        )

        response = post_webhook(client)

        assert response.status_code == 200
        logged = db_session.query(StripeEvent).filter(StripeEvent.stripe_event_id == "evt_orphan").first()
        assert logged.processed is True
        assert "No user found" in logged.error_message

    def test_plan_cache_is_invalidated(self, client, auto_mock_stripe, mock_redis, db_session, dj_user):
        mock_redis.set(f"cache:plan:{dj_user.id}", '{"plan": "none"}')
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            "evt_cache", "checkout.session.completed", checkout_session(dj_user)
        )

        post_webhook(client)

        assert mock_redis.get(f"cache:plan:{dj_user.id}") is None


@pytest.mark.high
class TestCheckoutFailures:

    @pytest.mark.parametrize("event_type,title", [
        ("checkout.session.expired", "Checkout Expired"),
        ("checkout.session.async_payment_failed", "Payment Failed"),
    ])
    def test_failure_notifies_without_plan_change(self, client, auto_mock_stripe, db_session, dj_user,
                                                   event_type, title):
        auto_mock_stripe.Webhook.construct_event.return_value = stripe_event(
            f"evt_{title}", event_type, checkout_session(dj_user)
        )

        assert post_webhook(client).status_code == 200

        db_session.refresh(dj_user)
        assert dj_user.subscription_plan == "none"
        notification = db_session.query(Notification).filter(Notification.user_id == dj_user.id).one()
        assert notification.title == title
