"""Subscription expiry sweep and its cron endpoint"""
from datetime import datetime, timedelta, timezone

import pytest

from heydj.core.config import settings
from heydj.models import Notification, RedemptionCode
from heydj.services.subscription_service import (
    downgrade_expired_users, get_plan_status, cancel_subscription, redeem_code
)
from tests.conftest import make_user, FakeStripeError

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def subscriber(db, email, plan="pro", period="monthly", expires=None):
    return make_user(
        db,
        email,
        subscription_plan=plan,
        subscription_period=period,
        subscription_start=NOW - timedelta(days=30),
        subscription_expires=expires,
        subscription_id="sub_123" if plan in ("pro", "trial") else None,
    )


def notifications_for(db, user):
    return db.query(Notification).filter(Notification.user_id == user.id).all()


@pytest.mark.critical
class TestDowngradeExpiredUsers:

    def test_expired_plan_is_cleared(self, db_session, mock_redis):
        user = subscriber(db_session, "late@example.com", expires=NOW - timedelta(minutes=1))

        assert downgrade_expired_users(db_session, now=NOW) == 1

        db_session.refresh(user)
        assert user.subscription_plan == "none"
        assert user.subscription_period is None
        assert user.subscription_expires is None
        assert user.subscription_id is None
        assert [n.title for n in notifications_for(db_session, user)] == ["Subscription Expired"]

    def test_future_expiry_untouched(self, db_session, mock_redis):
        user = subscriber(db_session, "current@example.com", expires=NOW + timedelta(days=3))

        assert downgrade_expired_users(db_session, now=NOW) == 0

        db_session.refresh(user)
        assert user.subscription_plan == "pro"
        assert notifications_for(db_session, user) == []

    def test_lifetime_never_expires(self, db_session, mock_redis):
        user = subscriber(db_session, "forever@example.com", plan="lifetime", period="lifetime", expires=None)

        assert downgrade_expired_users(db_session, now=NOW) == 0

        db_session.refresh(user)
        assert user.subscription_plan == "lifetime"

    def test_expired_trial_keeps_trial_used(self, db_session, mock_redis):
        user = subscriber(db_session, "trial@example.com", plan="trial", period="weekly",
                          expires=NOW - timedelta(days=1))
        user.trial_used = True
        db_session.commit()

        downgrade_expired_users(db_session, now=NOW)

        db_session.refresh(user)
        assert user.subscription_plan == "none"
        assert user.trial_used is True

    def test_second_run_is_a_no_op(self, db_session, mock_redis):
        user = subscriber(db_session, "late@example.com", expires=NOW - timedelta(days=1))

        downgrade_expired_users(db_session, now=NOW)
        assert downgrade_expired_users(db_session, now=NOW) == 0
        assert len(notifications_for(db_session, user)) == 1

    def test_every_batch_is_swept(self, db_session, mock_redis):
        expired = [
            subscriber(db_session, f"late{i}@example.com", expires=NOW - timedelta(hours=i + 1))
            for i in range(5)
        ]
        subscriber(db_session, "current@example.com", expires=NOW + timedelta(days=1))

        assert downgrade_expired_users(db_session, now=NOW, batch_size=2) == 5

        for user in expired:
            db_session.refresh(user)
            assert user.subscription_plan == "none"

    def test_cached_plan_is_dropped(self, db_session, mock_redis):
        user = subscriber(db_session, "late@example.com", expires=NOW - timedelta(days=1))
        get_plan_status(user.id, db_session, now=NOW - timedelta(days=2))
        assert mock_redis.get(f"cache:plan:{user.id}") is not None

        downgrade_expired_users(db_session, now=NOW)

        assert mock_redis.get(f"cache:plan:{user.id}") is None
        assert get_plan_status(user.id, db_session, now=NOW)["plan"] == "none"


@pytest.mark.critical
class TestStripeSubscriptionOnExpiry:

    def test_expired_trial_cancels_stripe_subscription(self, db_session, mock_redis, auto_mock_stripe):
        user = subscriber(db_session, "trial@example.com", plan="trial", period="weekly",
                          expires=NOW - timedelta(hours=1))
        user.subscription_id = "sub_live"
        db_session.commit()

        assert downgrade_expired_users(db_session, now=NOW) == 1

        auto_mock_stripe.Subscription.cancel.assert_called_once_with("sub_live")
        db_session.refresh(user)
        assert user.subscription_plan == "none"
        assert user.subscription_id is None

    def test_period_end_cancellation_is_not_repeated(self, db_session, mock_redis, auto_mock_stripe):
        user = subscriber(db_session, "gone@example.com", expires=NOW - timedelta(hours=1))
        user.subscription_cancelled = True
        db_session.commit()

        assert downgrade_expired_users(db_session, now=NOW) == 1
        auto_mock_stripe.Subscription.cancel.assert_not_called()

    def test_stripe_failure_defers_downgrade(self, db_session, mock_redis, auto_mock_stripe):
        user = subscriber(db_session, "stuck@example.com", plan="trial", period="weekly",
                          expires=NOW - timedelta(hours=1))
        other = subscriber(db_session, "paid@example.com", plan="pro", period="yearly",
                           expires=NOW - timedelta(hours=1))
        other.subscription_id = None
        db_session.commit()
        auto_mock_stripe.Subscription.cancel.side_effect = FakeStripeError("api down")

        assert downgrade_expired_users(db_session, now=NOW) == 1

        db_session.refresh(user)
        db_session.refresh(other)
        assert user.subscription_plan == "trial"
        assert user.subscription_id == "sub_123"
        assert other.subscription_plan == "none"

        auto_mock_stripe.Subscription.cancel.side_effect = None
        assert downgrade_expired_users(db_session, now=NOW) == 1
        db_session.refresh(user)
        assert user.subscription_plan == "none"

    def test_lingering_subscription_can_still_be_cancelled(self, db_session, mock_redis, auto_mock_stripe):
        user = make_user(db_session, "orphan@example.com", subscription_id="sub_live")

        result = cancel_subscription(user.id, db_session)

        assert result["canceled"] is True
        auto_mock_stripe.Subscription.modify.assert_called_once_with("sub_live", cancel_at_period_end=True)

    def test_redeeming_code_cancels_running_subscription(self, db_session, mock_redis, auto_mock_stripe):
        user = subscriber(db_session, "upgrade@example.com", plan="trial", period="weekly",
                          expires=NOW + timedelta(days=3))
        db_session.add(RedemptionCode(code="HEYDJ-LIFE-0001", plan="lifetime"))
        db_session.commit()

        status = redeem_code(user.id, "HEYDJ-LIFE-0001", db_session, now=NOW)

        assert status["plan"] == "lifetime"
        auto_mock_stripe.Subscription.cancel.assert_called_once_with("sub_123")
        db_session.refresh(user)
        assert user.subscription_id is None


@pytest.mark.high
class TestDowngradeEndpoint:

    def test_runs_sweep(self, client, db_session):
        subscriber(db_session, "late@example.com", expires=datetime.now(timezone.utc) - timedelta(days=1))

        response = client.post("/downgrade-expired")

        assert response.status_code == 200
        assert response.json() == {"message": "Downgrade completed", "downgraded": 1}

    def test_cron_secret_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "cron-secret")

        assert client.post("/downgrade-expired").status_code == 403
        assert client.post("/downgrade-expired", headers={"X-Cron-Secret": "wrong"}).status_code == 403

        response = client.post("/downgrade-expired", headers={"X-Cron-Secret": "cron-secret"})
        assert response.status_code == 200
        assert response.json()["downgraded"] == 0
