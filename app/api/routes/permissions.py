"""
Entitlement checks for the web client.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.auth_dependency import get_current_user
from app.core.plan_limits import get_point_cost
from app.schemas.points import AIToolsPermissionResponse
from app.services.grant_service import apply_monthly_allowance_if_needed
from app.services.ledger_service import get_point_balance
from app.services.subscription_service import resolve_tier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/permissions", tags=["Permissions"])


@router.get("/ai-tools", response_model=AIToolsPermissionResponse)
def get_ai_tools_permission(
    feature: str = Query("cover_letter", description="Point-priced action to check"),
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Whether the user can afford an AI action right now.

    Applies the pending monthly allowance first. canUse is
    points >= requiredPoints; on a storage outage the answer degrades
    to a free user with no points.
    """
    required = get_point_cost(feature)
    if required is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "unknown_action", "action": feature}
        )

    try:
        apply_monthly_allowance_if_needed(db, user_id)
        points = get_point_balance(db, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"AI tools permission degraded: user_id={user_id}, error={e}")
        return AIToolsPermissionResponse(
            can_use=False, subscription_level="free", points=0, required_points=required
        )

    subscription_level = resolve_tier(db, user_id)
    return AIToolsPermissionResponse(
        can_use=points >= required,
        subscription_level=subscription_level,
        points=points,
        required_points=required,
    )
