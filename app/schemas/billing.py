"""
Pydantic schemas for billing endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    plan: str = Field(..., description="Plan type: 'pro' or 'pro_plus'", pattern="^(pro|pro_plus)$")
    success_url: Optional[str] = Field(None, description="URL to redirect after successful payment")
    cancel_url: Optional[str] = Field(None, description="URL to redirect if payment is canceled")

    class Config:
        json_schema_extra = {
            "example": {
                "plan": "pro_plus",
                "success_url": "https://example.com/billing/success",
                "cancel_url": "https://example.com/billing"
            }
        }


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    checkout_url: str = Field(..., description="Stripe checkout session URL")
    session_id: str = Field(..., description="Stripe checkout session ID")


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    return_url: Optional[str] = Field(None, description="URL to return to after portal session")


class CreatePortalSessionResponse(BaseModel):
    """Response schema for portal session creation."""
    url: str = Field(..., description="Stripe customer portal URL")


class SubscriptionStatusResponse(BaseModel):
    """Response schema for GET /billing/subscription."""
    subscription_level: str = Field(..., alias="subscriptionLevel")
    price_id: Optional[str] = Field(None, alias="priceId")
    current_period_end: Optional[str] = Field(None, alias="currentPeriodEnd")
    cancel_at_period_end: bool = Field(False, alias="cancelAtPeriodEnd")

    class Config:
        populate_by_name = True
