"""
Points enforcement for AI features.

This module provides the require_points() dependency that:
1. Authenticates the user
2. Resolves the subscription tier
3. Applies any pending monthly allowance
4. Debits the action's point cost atomically
5. Raises HTTPException if the balance is insufficient

Only after it returns may the route call the enhancement service.
"""
import logging
from typing import Any, NamedTuple, Optional
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.auth_dependency import get_current_user, get_current_tier
from app.core.plan_limits import get_point_cost
from app.services.grant_service import apply_monthly_allowance_if_needed
from app.services.spend_service import deduct_points
from app.services.subscription_service import resolve_tier

logger = logging.getLogger(__name__)


class PointsCharge(NamedTuple):
    user_id: str
    action: str
    tier: str
    cost: int
    balance: Optional[int]


def charge_for_action(
    db: Session,
    user_id: str,
    action: str,
    metadata: Optional[Any] = None,
    tier: Optional[str] = None,
) -> PointsCharge:
    """
    Run the tier -> allowance -> spend sequence for one action.

    Args:
        db: Database session
        user_id: Identity-service user id
        action: POINT_COSTS key (e.g. "cover_letter")
        metadata: Optional payload stored on the ledger row
        tier: Tier already resolved for this request, if any

    Raises:
        HTTPException 400: Unknown action
        HTTPException 402: Insufficient points, with structured detail
    """
    cost = get_point_cost(action)
    if cost is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "unknown_action", "action": action}
        )

    if tier is None:
        tier = resolve_tier(db, user_id)
    apply_monthly_allowance_if_needed(db, user_id)

    result = deduct_points(db, user_id, cost, action, metadata)
    if not result.ok:
        logger.warning(
            f"Points check failed: user_id={user_id}, action={action}, "
            f"tier={tier}, required={cost}, balance={result.balance}"
        )
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "insufficient_points",
                "action": action,
                "plan": tier,
                "required": cost,
                "points": result.balance,
                "message": result.message,
            }
        )

    return PointsCharge(user_id=user_id, action=action, tier=tier, cost=cost, balance=result.balance)


def require_points(action: str):
    """
    Dependency that debits an action's cost before the route body runs.

    Args:
        action: POINT_COSTS key

    Returns:
        PointsCharge describing the debit

    Raises:
        HTTPException 402: Insufficient points
        HTTPException 401: Unauthorized
    """
    def points_checker(
        user_id: str = Depends(get_current_user),
        tier: str = Depends(get_current_tier),
        db: Session = Depends(get_db)
    ) -> PointsCharge:
        return charge_for_action(db, user_id, action, tier=tier)

    return points_checker
