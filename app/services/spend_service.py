"""
Spend engine: atomic point debits.

The balance check and the decrement happen on the locked subscription row
in the same transaction, so two concurrent spends can never both pass the
check against a stale balance.
"""
import logging
from typing import Any, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models.subscription import UserSubscription
from app.services.ledger_service import lock_subscription, record_transaction

logger = logging.getLogger(__name__)

INSUFFICIENT_POINTS = "Insufficient points"


class SpendResult(NamedTuple):
    ok: bool
    message: Optional[str] = None
    balance: Optional[int] = None


def debit_locked(
    db: Session,
    subscription: Optional[UserSubscription],
    amount: int,
    reason: str,
    metadata: Optional[Any] = None,
) -> SpendResult:
    """
    Debit an already locked row without committing.

    Composite operations call this so the debit shares their transaction.
    A missing row has a balance of 0.
    """
    balance = subscription.points_balance if subscription is not None else 0
    if balance < amount:
        return SpendResult(ok=False, message=INSUFFICIENT_POINTS, balance=balance)

    subscription.points_balance = balance - amount
    record_transaction(db, subscription.user_id, -amount, reason, metadata)
    return SpendResult(ok=True, balance=subscription.points_balance)


def deduct_points(
    db: Session,
    user_id: str,
    amount: int,
    reason: str,
    metadata: Optional[Any] = None,
) -> SpendResult:
    """
    Debit points for an action.

    Args:
        db: Database session
        user_id: Identity-service user id
        amount: Points to debit; 0 (e.g. feedback) always succeeds
        reason: Ledger reason, normally a POINT_COSTS key
        metadata: Optional JSON payload stored on the ledger row

    Returns:
        SpendResult. Insufficient balance is a normal outcome
        (ok=False, nothing written), not an exception. Storage errors
        propagate.
    """
    if amount <= 0:
        return SpendResult(ok=True)

    try:
        subscription = lock_subscription(db, user_id)
        result = debit_locked(db, subscription, amount, reason, metadata)
        if not result.ok:
            db.rollback()
            logger.info(
                f"Insufficient points: user_id={user_id}, reason={reason}, "
                f"required={amount}, balance={result.balance}"
            )
            return result
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Point deduction failed: user_id={user_id}, amount={amount}, reason={reason}")
        raise

    logger.info(f"Points deducted: user_id={user_id}, amount={amount}, reason={reason}, balance={result.balance}")
    return result
