"""
Voice interview entitlement.

A per-billing-period counter on the subscription row, separate from
points: pro_plus users get VOICE_INTERVIEW_LIMITS["pro_plus"] sessions per
period, everyone else none. Starting a session also costs
POINT_COSTS["voice_session_start"] points, debited in the same transaction
that bumps the counter.
"""
import logging
from typing import Any, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.plan_limits import POINT_COSTS, get_voice_interview_limit
from app.db.models.subscription import UserSubscription, utcnow
from app.services.grant_service import apply_monthly_allowance_if_needed
from app.services.ledger_service import add_months, lock_subscription
from app.services.spend_service import debit_locked
from app.services.subscription_service import resolve_tier

logger = logging.getLogger(__name__)

VOICE_SESSION_REASON = "voice_session_start"


class VoiceInterviewStatus(NamedTuple):
    can_use: bool
    used: int
    limit: int


class VoiceSessionResult(NamedTuple):
    ok: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    used: int = 0
    limit: int = 0
    balance: Optional[int] = None


def _counter_is_stale(subscription: UserSubscription) -> bool:
    """True when the stored counter was last reset before the current period began."""
    period_end = subscription.stripe_current_period_end
    if period_end is None:
        return False
    period_start = add_months(period_end, -1)
    reset_date = subscription.voice_interviews_reset_date
    return reset_date is None or reset_date < period_start


def _used_this_period(subscription: Optional[UserSubscription]) -> int:
    if subscription is None or _counter_is_stale(subscription):
        return 0
    return subscription.voice_interviews_used or 0


def get_voice_interview_status(db: Session, user_id: str) -> VoiceInterviewStatus:
    """Read-only status; degrades to no access if storage is unavailable."""
    tier = resolve_tier(db, user_id)
    limit = get_voice_interview_limit(tier)
    try:
        subscription = db.query(UserSubscription).filter(
            UserSubscription.user_id == user_id
        ).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Voice interview status unavailable: user_id={user_id}, error={e}")
        return VoiceInterviewStatus(can_use=False, used=0, limit=0)

    used = _used_this_period(subscription)
    return VoiceInterviewStatus(can_use=used < limit, used=used, limit=limit)


def start_voice_session(
    db: Session,
    user_id: str,
    metadata: Optional[Any] = None,
) -> VoiceSessionResult:
    """
    Gate and record the start of a voice interview.

    Checks the period limit, debits the session cost and increments the
    counter as one unit. Business refusals come back as ok=False with
    reason "limit_reached" or "insufficient_points"; storage errors raise.
    """
    tier = resolve_tier(db, user_id)
    limit = get_voice_interview_limit(tier)
    apply_monthly_allowance_if_needed(db, user_id)
    cost = POINT_COSTS[VOICE_SESSION_REASON]

    try:
        subscription = lock_subscription(db, user_id)
        used = _used_this_period(subscription)
        if used >= limit:
            db.rollback()
            logger.info(f"Voice interview limit reached: user_id={user_id}, tier={tier}, used={used}, limit={limit}")
            return VoiceSessionResult(
                ok=False,
                reason="limit_reached",
                message="Voice interview limit reached for this billing period",
                used=used,
                limit=limit,
            )

        spend = debit_locked(db, subscription, cost, VOICE_SESSION_REASON, metadata)
        if not spend.ok:
            db.rollback()
            logger.info(f"Insufficient points for voice session: user_id={user_id}, balance={spend.balance}")
            return VoiceSessionResult(
                ok=False,
                reason="insufficient_points",
                message=spend.message,
                used=used,
                limit=limit,
                balance=spend.balance,
            )

        if _counter_is_stale(subscription):
            subscription.voice_interviews_reset_date = utcnow()
        subscription.voice_interviews_used = used + 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Voice session start failed: user_id={user_id}")
        raise

    logger.info(f"Voice session started: user_id={user_id}, used={used + 1}/{limit}, balance={spend.balance}")
    return VoiceSessionResult(ok=True, used=used + 1, limit=limit, balance=spend.balance)
