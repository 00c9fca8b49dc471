"""
Unit tests for the starter grant and the monthly allowance.
"""
from datetime import timedelta

from app.core.plan_limits import REASON_MONTHLY_ALLOWANCE, REASON_STARTER_BONUS, STARTER_POINTS
from app.db.models.points_transaction import PointsTransaction
from app.db.models.subscription import UserSubscription, utcnow
from app.services.grant_service import (
    apply_monthly_allowance_if_needed,
    ensure_starter_grant,
    get_allowance_for_price_id,
)
from app.services.ledger_service import add_months, get_point_balance, ledger_total
from tests.conftest import PRO_PRICE_ID, PRO_PLUS_PRICE_ID


def _ledger(db, user_id, reason=None):
    query = db.query(PointsTransaction).filter(PointsTransaction.user_id == user_id)
    if reason:
        query = query.filter(PointsTransaction.reason == reason)
    return query.all()


def test_first_balance_check_creates_free_row(db):
    """Scenario: brand-new user gets a placeholder row and 30 points."""
    result = ensure_starter_grant(db, "new_user")

    assert result.is_new_user is True
    assert result.points_granted == STARTER_POINTS

    subscription = db.get(UserSubscription, "new_user")
    assert subscription.points_balance == STARTER_POINTS
    assert subscription.stripe_customer_id == "free_new_user"
    assert subscription.stripe_subscription_id == "free_sub_new_user"
    assert subscription.stripe_price_id == ""
    assert subscription.starter_points_granted_at is not None
    assert subscription.stripe_current_period_end > utcnow() + timedelta(days=27)

    rows = _ledger(db, "new_user")
    assert [(r.delta, r.reason) for r in rows] == [(STARTER_POINTS, REASON_STARTER_BONUS)]


def test_starter_grant_is_one_time(db):
    ensure_starter_grant(db, "user_1")
    second = ensure_starter_grant(db, "user_1")
    third = ensure_starter_grant(db, "user_1")

    assert second.is_new_user is False
    assert second.points_granted == 0
    assert third.points_granted == 0
    assert get_point_balance(db, "user_1") == STARTER_POINTS
    assert len(_ledger(db, "user_1", REASON_STARTER_BONUS)) == 1


def test_existing_row_without_starter_gets_it_once(db, make_subscription):
    """A row created by webhook sync still gets the starter bonus on first balance check."""
    make_subscription(price_id=PRO_PRICE_ID, balance=0)

    result = ensure_starter_grant(db, "user_1")
    assert result.is_new_user is False
    assert result.points_granted == STARTER_POINTS
    assert ensure_starter_grant(db, "user_1").points_granted == 0


def test_allowance_for_price_id():
    assert get_allowance_for_price_id(PRO_PRICE_ID) == 40
    assert get_allowance_for_price_id(PRO_PLUS_PRICE_ID) == 80
    assert get_allowance_for_price_id("price_pro_monthly") == 40
    assert get_allowance_for_price_id("") == 0
    assert get_allowance_for_price_id("price_1Qx9Unknown") == 0


def test_free_user_gets_no_allowance(db):
    ensure_starter_grant(db, "user_1")
    assert apply_monthly_allowance_if_needed(db, "user_1") == 0
    assert get_point_balance(db, "user_1") == STARTER_POINTS


def test_missing_row_gets_no_allowance(db):
    assert apply_monthly_allowance_if_needed(db, "nobody") == 0
    assert db.get(UserSubscription, "nobody") is None


def test_null_period_end_gets_no_allowance(db, make_subscription):
    subscription = make_subscription(price_id=PRO_PRICE_ID)
    subscription.stripe_current_period_end = None
    db.commit()

    assert apply_monthly_allowance_if_needed(db, "user_1") == 0


def test_allowance_once_per_period(db, make_subscription):
    make_subscription(price_id=PRO_PLUS_PRICE_ID, balance=5)

    assert apply_monthly_allowance_if_needed(db, "user_1") == 80
    assert apply_monthly_allowance_if_needed(db, "user_1") == 0
    assert apply_monthly_allowance_if_needed(db, "user_1") == 0

    subscription = db.get(UserSubscription, "user_1")
    assert subscription.points_balance == 85
    assert subscription.points_allowance == 80

    rows = _ledger(db, "user_1", REASON_MONTHLY_ALLOWANCE)
    assert len(rows) == 1
    assert rows[0].delta == 80
    assert rows[0].metadata_ == {"priceId": PRO_PLUS_PRICE_ID}


def test_allowance_again_after_period_advances(db, make_subscription):
    """Renewal moves period_end forward a month; the new period is funded exactly once."""
    subscription = make_subscription(price_id=PRO_PRICE_ID)
    assert apply_monthly_allowance_if_needed(db, "user_1") == 40

    # Backdate the first grant into the previous period, then renew
    grant = _ledger(db, "user_1", REASON_MONTHLY_ALLOWANCE)[0]
    grant.created_at = utcnow() - timedelta(days=20)
    subscription = db.get(UserSubscription, "user_1")
    subscription.stripe_current_period_end = add_months(utcnow(), 1)
    db.commit()

    assert apply_monthly_allowance_if_needed(db, "user_1") == 40
    assert apply_monthly_allowance_if_needed(db, "user_1") == 0
    assert len(_ledger(db, "user_1", REASON_MONTHLY_ALLOWANCE)) == 2
    assert get_point_balance(db, "user_1") == 80


def test_balance_matches_ledger_after_grants(db):
    ensure_starter_grant(db, "user_1")
    subscription = db.get(UserSubscription, "user_1")
    subscription.stripe_price_id = PRO_PRICE_ID
    db.commit()
    apply_monthly_allowance_if_needed(db, "user_1")

    assert get_point_balance(db, "user_1") == STARTER_POINTS + 40
    assert ledger_total(db, "user_1") == get_point_balance(db, "user_1")


def test_add_months_clamps_day():
    start = utcnow().replace(year=2025, month=1, day=31, hour=12, minute=0, second=0, microsecond=0)
    assert add_months(start, 1).day == 28
    assert add_months(start, 1).month == 2
    assert add_months(start, -1).month == 12
    assert add_months(start, -1).year == 2024
    assert add_months(start, 12).year == 2026
