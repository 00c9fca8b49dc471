"""
Grant engine: idempotent point credits.

Two grants with deliberately different guards:
- the starter bonus is guarded by starter_points_granted_at on the row;
- the monthly allowance is guarded by the ledger itself, counting
  monthly_allowance rows since the current billing period started.
Each check-then-credit runs on the locked subscription row inside one
transaction, so concurrent callers cannot both credit.
"""
import logging
from typing import NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.plan_limits import (
    STARTER_POINTS,
    REASON_STARTER_BONUS,
    REASON_MONTHLY_ALLOWANCE,
    get_monthly_allowance,
)
from app.db.models.points_transaction import PointsTransaction
from app.db.models.subscription import utcnow
from app.services.ledger_service import (
    add_months,
    get_or_create_subscription,
    lock_subscription,
    record_transaction,
)
from app.services.subscription_service import match_plan_for_price_id

logger = logging.getLogger(__name__)


class StarterGrantResult(NamedTuple):
    is_new_user: bool
    points_granted: int


def get_allowance_for_price_id(price_id: Optional[str]) -> int:
    """Monthly allowance funded by a price id; unrecognized ids fund nothing."""
    return get_monthly_allowance(match_plan_for_price_id(price_id))


def ensure_starter_grant(db: Session, user_id: str) -> StarterGrantResult:
    """
    Ensure the user has a subscription row and the one-time starter bonus.

    Safe to call on every balance check. Storage errors propagate: a grant
    that was not durably recorded must not be reported.
    """
    try:
        subscription, created = get_or_create_subscription(db, user_id)

        points_granted = 0
        if subscription.starter_points_granted_at is None:
            subscription.starter_points_granted_at = utcnow()
            subscription.points_balance += STARTER_POINTS
            record_transaction(db, user_id, STARTER_POINTS, REASON_STARTER_BONUS)
            points_granted = STARTER_POINTS

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Starter grant failed: user_id={user_id}")
        raise

    if points_granted:
        logger.info(f"Starter points granted: user_id={user_id}, points={points_granted}, new_user={created}")

    return StarterGrantResult(is_new_user=created, points_granted=points_granted)


def apply_monthly_allowance_if_needed(db: Session, user_id: str) -> int:
    """
    Credit the allowance for the current billing period at most once.

    The period is keyed off stripe_current_period_end, not the calendar:
    period_start = period_end - 1 month. Any monthly_allowance row created
    at or after period_start means this period is already funded.

    Returns:
        Points credited by this call (0 when nothing was due)
    """
    try:
        subscription = lock_subscription(db, user_id)
        if subscription is None:
            db.rollback()
            return 0

        allowance = get_allowance_for_price_id(subscription.stripe_price_id)
        period_end = subscription.stripe_current_period_end
        if allowance <= 0 or period_end is None:
            db.rollback()
            return 0

        period_start = add_months(period_end, -1)
        already_credited = db.query(func.count(PointsTransaction.id)).filter(
            PointsTransaction.user_id == user_id,
            PointsTransaction.reason == REASON_MONTHLY_ALLOWANCE,
            PointsTransaction.created_at >= period_start,
        ).scalar()
        if already_credited:
            db.rollback()
            return 0

        price_id = subscription.stripe_price_id or None
        subscription.points_allowance = allowance
        subscription.points_balance += allowance
        new_balance = subscription.points_balance
        record_transaction(db, user_id, allowance, REASON_MONTHLY_ALLOWANCE, {"priceId": price_id})
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Monthly allowance failed: user_id={user_id}")
        raise

    logger.info(
        f"Monthly allowance applied: user_id={user_id}, points={allowance}, "
        f"price_id={price_id}, period_end={period_end.isoformat()}, balance={new_balance}"
    )
    return allowance
