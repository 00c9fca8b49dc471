"""
Stripe service for checkout, billing portal, subscription lookup and webhook verification.
"""
import logging
from typing import Optional
import stripe
from app.core import config

logger = logging.getLogger(__name__)

# Initialize Stripe client
if config.STRIPE_SECRET_KEY:
    stripe.api_key = config.STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


def get_price_id_for_plan(plan: str) -> Optional[str]:
    """Get the configured Stripe price ID for a plan (pro or pro_plus)."""
    price_id = {
        "pro": config.STRIPE_PRICE_ID_PRO_MONTHLY,
        "pro_plus": config.STRIPE_PRICE_ID_PRO_PLUS_MONTHLY,
    }.get(plan.lower())
    if not price_id or price_id.startswith("price_your_"):
        # Handle placeholder values from .env.example
        return None
    return price_id


def retrieve_subscription(subscription_id: str):
    """
    Fetch the authoritative subscription object from Stripe.

    Raises:
        stripe.error.StripeError: propagated so the webhook delivery fails
        and Stripe retries it
    """
    try:
        return stripe.Subscription.retrieve(subscription_id)
    except stripe.error.StripeError as e:
        logger.error(f"Stripe error retrieving subscription_id={subscription_id}: {e}")
        raise


def create_checkout_session(
    user_id: str,
    plan: str,
    customer_id: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None
) -> dict:
    """
    Create Stripe Checkout session for a subscription plan.

    user_id is stored in both the session and the subscription metadata;
    webhook sync relies on subscription.metadata.user_id.

    Args:
        user_id: Identity-service user id
        plan: "pro" or "pro_plus"
        customer_id: Existing Stripe customer, if known
        success_url: Redirect URL after successful payment (defaults to FRONTEND_URL/billing/success)
        cancel_url: Redirect URL if user cancels (defaults to FRONTEND_URL/billing)

    Returns:
        Dictionary with 'url' and 'session_id'
    """
    if not config.STRIPE_SECRET_KEY:
        raise ValueError("Stripe not configured - STRIPE_SECRET_KEY required")

    price_id = get_price_id_for_plan(plan)
    if not price_id:
        raise ValueError(f"Invalid plan type: {plan}. Must be 'pro' or 'pro_plus'")

    if not success_url:
        success_url = f"{config.FRONTEND_URL}/billing/success?session_id={{CHECKOUT_SESSION_ID}}"
    if not cancel_url:
        cancel_url = f"{config.FRONTEND_URL}/billing"

    params = {
        "mode": "subscription",
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id},
        "subscription_data": {"metadata": {"user_id": user_id}},
    }
    if customer_id:
        params["customer"] = customer_id

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.error.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {e}")
        raise ValueError(f"Failed to create checkout session: {str(e)}")

    logger.info(f"Created checkout session for user_id={user_id}, plan={plan}, session_id={session.id}")
    return {"url": session.url, "session_id": session.id}


def create_billing_portal_session(
    customer_id: str,
    return_url: Optional[str] = None
) -> dict:
    """
    Create Stripe Billing Portal session for managing subscription.

    Args:
        customer_id: Stripe customer ID
        return_url: URL to return to after portal session (defaults to FRONTEND_URL/billing)

    Returns:
        Dictionary with 'url' key containing portal session URL
    """
    if not config.STRIPE_SECRET_KEY:
        raise ValueError("Stripe not configured - STRIPE_SECRET_KEY required")

    if not return_url:
        return_url = f"{config.FRONTEND_URL}/billing"

    try:
        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
        )
    except stripe.error.StripeError as e:
        logger.error(f"Stripe error creating portal session: {e}")
        raise ValueError(f"Failed to create portal session: {str(e)}")

    logger.info(f"Created billing portal session for customer_id={customer_id}")
    return {"url": session.url}


def verify_webhook(request_body: bytes, signature: str):
    """
    Verify and parse Stripe webhook event.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Parsed stripe.Event

    Raises:
        ValueError: If webhook verification fails
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        raise ValueError("STRIPE_WEBHOOK_SECRET not configured")

    try:
        event = stripe.Webhook.construct_event(
            request_body, signature, config.STRIPE_WEBHOOK_SECRET
        )
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValueError(f"Invalid webhook payload: {e}")
    except stripe.error.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise ValueError(f"Invalid signature: {e}")

    logger.info(f"Verified webhook event: {event['type']}, id={event['id']}")
    return event
