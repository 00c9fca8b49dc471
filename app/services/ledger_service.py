"""
Ledger store for user points.

Owns the subscription row lifecycle helpers and the append-only
PointsTransaction log. Every balance mutation in this codebase goes
through a locked UserSubscription row plus record_transaction() inside
the same session transaction; the caller commits once.
"""
import calendar
import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models.subscription import UserSubscription, utcnow
from app.db.models.points_transaction import PointsTransaction

logger = logging.getLogger(__name__)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def lock_subscription(db: Session, user_id: str) -> Optional[UserSubscription]:
    """
    Load a user's subscription row for update within the current transaction.

    Row-locks on databases that support it; SQLite transactions already hold
    the write lock (see app.db.session.build_engine). populate_existing()
    discards any stale copy cached in the session.
    """
    query = db.query(UserSubscription).filter(UserSubscription.user_id == user_id)
    if db.get_bind().dialect.name != "sqlite":
        query = query.with_for_update()
    return query.populate_existing().first()


def get_or_create_subscription(db: Session, user_id: str) -> Tuple[UserSubscription, bool]:
    """
    Lock the user's row, creating a free placeholder row when none exists.

    Returns (subscription, created). Does not commit. A concurrent insert of
    the same user_id is absorbed by re-reading the winner's row.
    """
    subscription = lock_subscription(db, user_id)
    if subscription is not None:
        return subscription, False

    now = utcnow()
    subscription = UserSubscription(
        user_id=user_id,
        stripe_customer_id=UserSubscription.placeholder_customer_id(user_id),
        stripe_subscription_id=UserSubscription.placeholder_subscription_id(user_id),
        stripe_price_id="",
        stripe_current_period_end=add_months(now, 1),
        stripe_cancel_at_period_end=False,
        points_balance=0,
        points_allowance=0,
        voice_interviews_used=0,
        voice_interviews_reset_date=now,
        created_at=now,
    )
    try:
        with db.begin_nested():
            db.add(subscription)
    except IntegrityError:
        logger.info(f"Subscription row created concurrently, re-reading: user_id={user_id}")
        return lock_subscription(db, user_id), False

    logger.info(f"Created free subscription record: user_id={user_id}")
    return subscription, True


def record_transaction(
    db: Session,
    user_id: str,
    delta: int,
    reason: str,
    metadata: Optional[Any] = None,
) -> PointsTransaction:
    """Append a ledger row to the current transaction (no commit)."""
    transaction = PointsTransaction(
        user_id=user_id,
        delta=delta,
        reason=reason,
        metadata_=metadata,
        created_at=utcnow(),
    )
    db.add(transaction)
    return transaction


def get_point_balance(db: Session, user_id: str) -> int:
    """Current spendable balance; 0 when the user has no row yet."""
    balance = db.query(UserSubscription.points_balance).filter(
        UserSubscription.user_id == user_id
    ).scalar()
    return balance or 0


def has_points(db: Session, user_id: str, cost: int) -> bool:
    return get_point_balance(db, user_id) >= cost


def credit_points(
    db: Session,
    user_id: str,
    amount: int,
    reason: str,
    metadata: Optional[Any] = None,
) -> int:
    """
    Credit points in one atomic unit and return the new balance.

    Used for manual adjustments and refunds; amount <= 0 is a no-op.
    """
    if amount <= 0:
        return get_point_balance(db, user_id)

    try:
        subscription, _ = get_or_create_subscription(db, user_id)
        subscription.points_balance += amount
        new_balance = subscription.points_balance
        record_transaction(db, user_id, amount, reason, metadata)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to credit points: user_id={user_id}, amount={amount}, reason={reason}")
        raise

    logger.info(
        f"Points credited: user_id={user_id}, amount={amount}, reason={reason}, "
        f"balance={new_balance}"
    )
    return new_balance


def get_transactions(db: Session, user_id: str, limit: int = 50) -> List[PointsTransaction]:
    """Ledger history, newest first."""
    return db.query(PointsTransaction).filter(
        PointsTransaction.user_id == user_id
    ).order_by(
        PointsTransaction.created_at.desc(),
        PointsTransaction.id.desc(),
    ).limit(limit).all()


def ledger_total(db: Session, user_id: str) -> int:
    """
    Sum of deltas since the user's current subscription row was created.

    Equals points_balance whenever the ledger is consistent.
    """
    created_at = db.query(UserSubscription.created_at).filter(
        UserSubscription.user_id == user_id
    ).scalar()
    if created_at is None:
        return 0

    total = db.query(func.coalesce(func.sum(PointsTransaction.delta), 0)).filter(
        PointsTransaction.user_id == user_id,
        PointsTransaction.created_at >= created_at,
    ).scalar()
    return int(total or 0)
