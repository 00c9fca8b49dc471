"""
Unit tests for Stripe subscription sync.

stripe_service.retrieve_subscription is replaced with a stub returning the
"authoritative" subscription, so no network calls are made.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.db.models.billing_customer import BillingCustomer
from app.db.models.points_transaction import PointsTransaction
from app.db.models.subscription import UserSubscription, utcnow
from app.services import billing_service, stripe_service
from app.services.grant_service import apply_monthly_allowance_if_needed
from app.services.subscription_service import resolve_tier
from tests.conftest import PRO_PRICE_ID, PRO_PLUS_PRICE_ID


def stripe_subscription(
    status="active",
    price_id=PRO_PLUS_PRICE_ID,
    user_id="user_1",
    customer="cus_123",
    period_end=None,
    cancel_at_period_end=False,
    item_level_period=False,
):
    period_end = period_end or datetime.now(timezone.utc) + timedelta(days=15)
    timestamp = int(period_end.timestamp())
    item = {"id": "si_1", "price": {"id": price_id, "object": "price"}}
    subscription = {
        "id": "sub_123",
        "object": "subscription",
        "status": status,
        "customer": customer,
        "metadata": {"user_id": user_id} if user_id else {},
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"object": "list", "data": [item]},
    }
    if item_level_period:
        item["current_period_end"] = timestamp
    else:
        subscription["current_period_end"] = timestamp
    return subscription


@pytest.fixture
def stripe_state(monkeypatch):
    """Mutable stand-in for Stripe's copy of sub_123."""
    state = {"subscription": stripe_subscription(), "calls": 0}

    def fake_retrieve(subscription_id):
        state["calls"] += 1
        assert subscription_id == state["subscription"]["id"]
        return state["subscription"]

    monkeypatch.setattr(stripe_service, "retrieve_subscription", fake_retrieve)
    return state


def test_created_event_inserts_row(db, stripe_state):
    row = billing_service.handle_subscription_created_or_updated(db, "sub_123")

    assert row.user_id == "user_1"
    assert row.stripe_customer_id == "cus_123"
    assert row.stripe_subscription_id == "sub_123"
    assert row.stripe_price_id == PRO_PLUS_PRICE_ID
    assert row.stripe_current_period_end > utcnow() + timedelta(days=14)
    assert row.stripe_cancel_at_period_end is False
    assert row.points_balance == 0
    assert resolve_tier(db, "user_1") == "pro_plus"


def test_updated_event_overwrites_placeholder_row(db, stripe_state, make_subscription):
    """A free user who upgrades keeps their balance and loses the placeholder ids."""
    make_subscription(balance=12, starter_points_granted_at=utcnow())
    stripe_state["subscription"] = stripe_subscription(price_id=PRO_PRICE_ID, cancel_at_period_end=True)

    billing_service.handle_subscription_created_or_updated(db, "sub_123")

    row = db.get(UserSubscription, "user_1")
    assert row.points_balance == 12
    assert row.stripe_customer_id == "cus_123"
    assert row.stripe_price_id == PRO_PRICE_ID
    assert row.stripe_cancel_at_period_end is True
    assert db.query(UserSubscription).count() == 1


def test_item_level_period_end(db, stripe_state):
    stripe_state["subscription"] = stripe_subscription(item_level_period=True)
    row = billing_service.handle_subscription_created_or_updated(db, "sub_123")
    assert row.stripe_current_period_end is not None


def test_duplicate_update_is_a_no_op(db, stripe_state):
    """Sync never grants points; replaying the same event leaves the ledger alone."""
    event = {"type": "customer.subscription.updated", "data": {"object": {"id": "sub_123"}}}

    assert billing_service.process_event(db, event) is True
    assert apply_monthly_allowance_if_needed(db, "user_1") == 80
    first = db.get(UserSubscription, "user_1")
    snapshot = (first.stripe_price_id, first.stripe_current_period_end, first.points_balance)

    assert billing_service.process_event(db, event) is True
    assert apply_monthly_allowance_if_needed(db, "user_1") == 0

    second = db.get(UserSubscription, "user_1")
    assert (second.stripe_price_id, second.stripe_current_period_end, second.points_balance) == snapshot
    assert db.query(PointsTransaction).count() == 1
    assert stripe_state["calls"] == 2


@pytest.mark.parametrize("status", ["canceled", "incomplete_expired", "unpaid"])
def test_non_entitled_status_removes_rows(db, stripe_state, make_subscription, status):
    make_subscription(customer_id="cus_123", balance=40)
    stripe_state["subscription"] = stripe_subscription(status=status)

    assert billing_service.handle_subscription_created_or_updated(db, "sub_123") is None
    assert db.query(UserSubscription).filter(UserSubscription.user_id == "user_1").first() is None


@pytest.mark.parametrize("status", ["active", "trialing", "past_due"])
def test_entitled_statuses_keep_row(db, stripe_state, status):
    stripe_state["subscription"] = stripe_subscription(status=status)
    assert billing_service.handle_subscription_created_or_updated(db, "sub_123") is not None


def test_missing_user_id_raises(db, stripe_state):
    stripe_state["subscription"] = stripe_subscription(user_id=None)
    with pytest.raises(ValueError):
        billing_service.handle_subscription_created_or_updated(db, "sub_123")
    assert db.query(UserSubscription).count() == 0


def test_deleted_event_removes_rows_and_keeps_history(db, make_subscription):
    make_subscription(customer_id="cus_123", balance=40)
    db.add(PointsTransaction(user_id="user_1", delta=40, reason="monthly_allowance", created_at=utcnow()))
    db.commit()

    event = {
        "type": "customer.subscription.deleted",
        "data": {"object": {"id": "sub_123", "customer": "cus_123", "status": "canceled"}},
    }
    assert billing_service.process_event(db, event) is True

    assert db.query(UserSubscription).count() == 0
    assert db.query(PointsTransaction).count() == 1
    assert resolve_tier(db, "user_1") == "free"


def test_deleted_event_for_unknown_customer(db):
    assert billing_service.handle_subscription_deleted(db, {"id": "sub_x", "customer": "cus_unknown"}) == 0


def test_checkout_completed_records_customer(db):
    session = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "customer": "cus_123",
        "client_reference_id": "user_1",
        "metadata": {"user_id": "user_1"},
    }
    event = {"type": "checkout.session.completed", "data": {"object": session}}

    assert billing_service.process_event(db, event) is True
    assert billing_service.get_customer_id_for_user(db, "user_1") == "cus_123"

    # Replays and customer changes update the same mapping
    session["customer"] = "cus_456"
    billing_service.process_event(db, event)
    assert db.query(BillingCustomer).count() == 1
    assert billing_service.get_customer_id_for_user(db, "user_1") == "cus_456"
    assert db.query(PointsTransaction).count() == 0


def test_checkout_falls_back_to_client_reference_id(db):
    customer = billing_service.handle_checkout_session_completed(
        db, {"customer": "cus_9", "client_reference_id": "user_9", "metadata": {}}
    )
    assert customer.user_id == "user_9"


def test_checkout_without_user_raises(db):
    with pytest.raises(ValueError):
        billing_service.handle_checkout_session_completed(db, {"customer": "cus_9", "metadata": {}})


def test_customer_id_ignores_placeholder(db, make_subscription):
    make_subscription()
    assert billing_service.get_customer_id_for_user(db, "user_1") is None

    make_subscription(user_id="user_2", customer_id="cus_222")
    assert billing_service.get_customer_id_for_user(db, "user_2") == "cus_222"


def test_unhandled_event_type(db):
    event = {"type": "invoice.paid", "data": {"object": {"id": "in_1"}}}
    assert billing_service.process_event(db, event) is False
