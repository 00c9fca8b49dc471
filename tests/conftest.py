"""
Shared fixtures.

Tests run against a throwaway SQLite file built with the application's own
engine factory, so transactions use the same BEGIN IMMEDIATE locking as a
SQLite deployment and separate sessions get separate connections.
"""
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from app.core import config
from app.db.base import Base
from app.db.models.subscription import UserSubscription, utcnow
from app.db.session import build_engine
import app.db.models  # noqa: F401

PRO_PRICE_ID = "price_1PfTestProMonthly"
PRO_PLUS_PRICE_ID = "price_1PfTestPlusMonthly"


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def price_config(monkeypatch):
    """Configured Stripe price ids whose names do not match any tier substring."""
    monkeypatch.setattr(config, "STRIPE_PRICE_ID_PRO_MONTHLY", PRO_PRICE_ID)
    monkeypatch.setattr(config, "STRIPE_PRICE_ID_PRO_PLUS_MONTHLY", PRO_PLUS_PRICE_ID)


@pytest.fixture
def make_subscription(db):
    """Insert a subscription row directly, bypassing the grant engine."""
    def _make(
        user_id="user_1",
        price_id="",
        period_end=None,
        balance=0,
        customer_id=None,
        **fields
    ):
        now = utcnow()
        subscription = UserSubscription(
            user_id=user_id,
            stripe_customer_id=customer_id or UserSubscription.placeholder_customer_id(user_id),
            stripe_subscription_id=UserSubscription.placeholder_subscription_id(user_id),
            stripe_price_id=price_id,
            stripe_current_period_end=period_end if period_end is not None else now + timedelta(days=15),
            stripe_cancel_at_period_end=False,
            points_balance=balance,
            points_allowance=0,
            voice_interviews_used=0,
            voice_interviews_reset_date=now,
            created_at=now - timedelta(days=1),
        )
        for key, value in fields.items():
            setattr(subscription, key, value)
        db.add(subscription)
        db.commit()
        return subscription

    return _make


@pytest.fixture
def client(session_factory):
    """TestClient whose requests use the test database."""
    from fastapi.testclient import TestClient
    from app.db.session import get_db
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer token for user_1, as issued by the identity service."""
    from app.core.security import create_access_token
    token = create_access_token({"sub": "user_1"})
    return {"Authorization": f"Bearer {token}"}
