"""
Billing endpoints: Stripe checkout, customer portal and subscription status.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.auth_dependency import get_current_user, get_current_tier
from app.db.models.subscription import UserSubscription
from app.schemas.billing import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreatePortalSessionRequest,
    CreatePortalSessionResponse,
    SubscriptionStatusResponse,
)
from app.services import stripe_service
from app.services.billing_service import get_customer_id_for_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/checkout", response_model=CreateCheckoutSessionResponse)
def create_checkout(
    request: CreateCheckoutSessionRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Start a Stripe Checkout session for the pro or pro_plus plan."""
    customer_id = get_customer_id_for_user(db, user_id)
    try:
        session = stripe_service.create_checkout_session(
            user_id=user_id,
            plan=request.plan,
            customer_id=customer_id,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
        )
    except ValueError as e:
        logger.warning(f"Checkout session failed: user_id={user_id}, plan={request.plan}, error={e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "billing_error", "detail": str(e)}
        )
    return CreateCheckoutSessionResponse(checkout_url=session["url"], session_id=session["session_id"])


@router.post("/portal", response_model=CreatePortalSessionResponse)
def create_portal(
    request: CreatePortalSessionRequest = None,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open the Stripe customer portal for a user who has paid before."""
    customer_id = get_customer_id_for_user(db, user_id)
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "billing_error", "detail": "Stripe customer ID not found"}
        )

    try:
        session = stripe_service.create_billing_portal_session(
            customer_id, return_url=request.return_url if request else None
        )
    except ValueError as e:
        logger.warning(f"Portal session failed: user_id={user_id}, error={e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "billing_error", "detail": str(e)}
        )
    return CreatePortalSessionResponse(url=session["url"])


@router.get("/subscription", response_model=SubscriptionStatusResponse)
def get_subscription(
    user_id: str = Depends(get_current_user),
    tier: str = Depends(get_current_tier),
    db: Session = Depends(get_db)
):
    """Current tier, price and cancellation flag for the billing page."""
    subscription = db.get(UserSubscription, user_id)
    if subscription is None:
        return SubscriptionStatusResponse(subscription_level=tier)

    period_end = subscription.stripe_current_period_end
    return SubscriptionStatusResponse(
        subscription_level=tier,
        price_id=subscription.stripe_price_id or None,
        current_period_end=period_end.isoformat() if period_end else None,
        cancel_at_period_end=subscription.stripe_cancel_at_period_end,
    )
