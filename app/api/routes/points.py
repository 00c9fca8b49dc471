"""
Points endpoints.

Balance checks opportunistically run the idempotent grants; spends go
through the points guard.
"""
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.auth_dependency import get_current_user, get_current_tier
from app.core.plan_limits import STARTER_POINTS
from app.core.points_guard import charge_for_action
from app.schemas.points import (
    PointsBalanceResponse,
    PointsHistoryResponse,
    PointsTransactionItem,
    SpendPointsRequest,
    SpendPointsResponse,
)
from app.services.grant_service import ensure_starter_grant, apply_monthly_allowance_if_needed
from app.services.ledger_service import get_point_balance, get_transactions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["Points"])

WELCOME_MESSAGE = f"Welcome! You've received {STARTER_POINTS} starter points."


@router.get(
    "/balance",
    response_model=PointsBalanceResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
def get_balance(
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get the current points balance.

    Creates the subscription record and grants starter points on first
    call, then applies the monthly allowance for the current period.
    A storage outage returns {"points": 0} instead of failing the page.
    """
    try:
        grant = ensure_starter_grant(db, user_id)
        apply_monthly_allowance_if_needed(db, user_id)
        points = get_point_balance(db, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Balance unavailable, returning 0: user_id={user_id}, error={e}")
        return PointsBalanceResponse(points=0)

    return PointsBalanceResponse(
        points=points,
        is_new_user=grant.is_new_user,
        points_granted=grant.points_granted,
        message=WELCOME_MESSAGE if grant.points_granted > 0 else None,
    )


@router.get("/transactions", response_model=PointsHistoryResponse)
def get_history(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get ledger history, newest first."""
    transactions = get_transactions(db, user_id, limit=limit)
    return PointsHistoryResponse(
        points=get_point_balance(db, user_id),
        transactions=[
            PointsTransactionItem(
                id=t.id,
                delta=t.delta,
                reason=t.reason,
                metadata=t.metadata_,
                created_at=t.created_at,
            )
            for t in transactions
        ],
    )


@router.post("/spend", response_model=SpendPointsResponse)
def spend_points(
    request: SpendPointsRequest,
    user_id: str = Depends(get_current_user),
    tier: str = Depends(get_current_tier),
    db: Session = Depends(get_db)
):
    """
    Debit the cost of an AI action before the client runs it.

    Returns 402 with the current balance when points are insufficient.
    """
    charge = charge_for_action(db, user_id, request.action, request.metadata, tier=tier)
    points = charge.balance if charge.balance is not None else get_point_balance(db, user_id)
    return SpendPointsResponse(action=charge.action, cost=charge.cost, points=points)
