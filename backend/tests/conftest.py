"""Shared pytest fixtures for test suite"""
import os
import secrets
import sys
from pathlib import Path
from typing import Generator
from unittest.mock import Mock, patch

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from heydj.main import app  # noqa: E402
from heydj.db.session import get_db  # noqa: E402
from heydj.db import redis as redis_module  # noqa: E402
from heydj.models import Base, User, Event  # noqa: E402


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeSignatureVerificationError(Exception):
    def __init__(self, message="", sig_header=None):
        super().__init__(message)
        self.sig_header = sig_header


class FakeStripeError(Exception):
    pass


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Swap the lazily created Redis client for fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # closed by the db_session fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        with patch("heydj.main.initialize_otel", return_value=False):
            with patch("heydj.main.init_db"):
                with patch("heydj.main.start_background_tasks", return_value=[]):
                    with TestClient(app) as test_client:
                        yield test_client
    finally:
        app.dependency_overrides.clear()


def make_user(db: Session, email: str, **fields) -> User:
    user = User(email=email, **fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_event(db: Session, dj: User, name: str = "Friday Night", active: bool = True) -> Event:
    event = Event(dj_id=dj.id, name=name, active=active)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@pytest.fixture(scope="function")
def dj_user(db_session: Session) -> User:
    return make_user(db_session, "dj@example.com", dj_name="DJ Test")


@pytest.fixture(scope="function")
def other_dj(db_session: Session) -> User:
    return make_user(db_session, "other@example.com", dj_name="Other DJ")


@pytest.fixture(scope="function")
def event(db_session: Session, dj_user: User) -> Event:
    return make_event(db_session, dj_user)


def login(client: TestClient, mock_redis, user: User) -> str:
    """Install a session + CSRF token the way the identity provider would"""
    session_id = secrets.token_urlsafe(32)
    csrf_token = secrets.token_urlsafe(32)
    mock_redis.setex(f"session:{session_id}", 2592000, user.id)
    mock_redis.setex(f"csrf:{session_id}", 2592000, csrf_token)
    client.cookies.set("session_id", session_id)
    client.headers.update({"X-CSRF-Token": csrf_token})
    return session_id


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, dj_user: User, mock_redis) -> TestClient:
    """Client with an authenticated DJ session and CSRF token"""
    login(client, mock_redis, dj_user)
    return client


@pytest.fixture(scope="function", autouse=True)
def auto_mock_stripe():
    """Automatically mock Stripe for all tests so nothing reaches the real API"""
    with patch("heydj.services.stripe_service.stripe") as mock_stripe_module:
        mock_stripe_module.checkout.Session.create = Mock(return_value=Mock(
            id="cs_test123",
            url="https://checkout.stripe.com/test"
        ))
        mock_stripe_module.Subscription.modify = Mock(return_value=Mock(
            id="sub_test123",
            cancel_at_period_end=True
        ))
        mock_stripe_module.Webhook.construct_event = Mock(return_value={
            "id": "evt_test123",
            "type": "customer.created",
            "data": {"object": {}}
        })

        # Real exception classes so except clauses work
        mock_stripe_module.SignatureVerificationError = FakeSignatureVerificationError
        mock_stripe_module.StripeError = FakeStripeError

        yield mock_stripe_module
