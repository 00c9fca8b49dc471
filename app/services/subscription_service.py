"""
Entitlement resolver: maps a user's subscription row to a tier.

Tiers are free, pro and pro_plus. Resolution is read-only and must not be
cached beyond a single request, since webhooks change the row at any time.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.db.models.subscription import UserSubscription

logger = logging.getLogger(__name__)


def match_plan_for_price_id(price_id: Optional[str]) -> Optional[str]:
    """
    Classify a Stripe price id.

    Exact matches against the configured price ids win; substring checks
    only run after both exact checks fail, so a configured id is never
    reclassified by its spelling. Returns None for an unrecognized id.
    """
    if not price_id:
        return "free"

    if config.STRIPE_PRICE_ID_PRO_PLUS_MONTHLY and price_id == config.STRIPE_PRICE_ID_PRO_PLUS_MONTHLY:
        return "pro_plus"
    if config.STRIPE_PRICE_ID_PRO_MONTHLY and price_id == config.STRIPE_PRICE_ID_PRO_MONTHLY:
        return "pro"

    # Price ids differ between Stripe environments; fall back to naming
    lowered = price_id.lower()
    if "free" in lowered:
        return "free"
    if "pro_plus" in lowered or "proplus" in lowered:
        return "pro_plus"
    if "pro" in lowered:
        return "pro"
    return None


def resolve_tier(db: Session, user_id: str, now: Optional[datetime] = None) -> str:
    """
    Get the user's subscription tier.

    Args:
        db: Database session
        user_id: Identity-service user id
        now: Override for the current time (naive UTC)

    Returns:
        "free", "pro" or "pro_plus". Missing or expired subscriptions are
        free; an unrecognized paid price id is treated as pro. A storage
        failure also yields free so free-tier features stay usable.
    """
    try:
        subscription = db.query(UserSubscription).filter(
            UserSubscription.user_id == user_id
        ).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Subscription lookup failed, treating as free: user_id={user_id}, error={e}")
        return "free"

    if subscription is None or not subscription.is_active(now):
        return "free"

    plan = match_plan_for_price_id(subscription.stripe_price_id)
    if plan is None:
        logger.warning(
            f"Unrecognized price id, defaulting to pro: user_id={user_id}, "
            f"price_id={subscription.stripe_price_id}"
        )
        return "pro"
    return plan
