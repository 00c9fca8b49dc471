"""
Subscription sync from Stripe webhook events.

The local UserSubscription row is a cache of Stripe's subscription state.
created/updated events re-fetch the subscription from Stripe instead of
trusting the payload, so duplicate and out-of-order deliveries converge on
current truth. The Stripe call always happens before the local transaction
is opened. Sync never grants points; the allowance is applied lazily by the
grant engine, keyed on the billing period.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models.billing_customer import BillingCustomer
from app.db.models.subscription import UserSubscription
from app.services import stripe_service
from app.services.ledger_service import get_or_create_subscription

logger = logging.getLogger(__name__)

# Stripe statuses that keep the paid entitlement
ENTITLED_STATUSES = {"active", "trialing", "past_due"}

SUBSCRIPTION_EVENTS = {"customer.subscription.created", "customer.subscription.updated"}


def _stripe_id(value: Any) -> Optional[str]:
    """Stripe fields may hold an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return value["id"]


def _first_item(stripe_subscription) -> Dict:
    items = stripe_subscription["items"]["data"]
    return items[0] if items else {}


def _current_period_end(stripe_subscription) -> Optional[datetime]:
    # Newer API versions carry the period on the subscription item
    timestamp = stripe_subscription.get("current_period_end") or _first_item(stripe_subscription).get("current_period_end")
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def _delete_by_customer(db: Session, customer_id: Optional[str]) -> int:
    if not customer_id:
        logger.warning("Subscription removal skipped: event has no customer id")
        return 0
    try:
        deleted = db.query(UserSubscription).filter(
            UserSubscription.stripe_customer_id == customer_id
        ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to remove subscription: customer_id={customer_id}")
        raise

    logger.info(f"Subscription removed: customer_id={customer_id}, rows={deleted}")
    return deleted


def handle_subscription_created_or_updated(db: Session, subscription_id: str) -> Optional[UserSubscription]:
    """
    Handle customer.subscription.created / customer.subscription.updated.

    Args:
        db: Database session
        subscription_id: Stripe subscription id from the event payload

    Returns:
        The upserted row, or None when the subscription is no longer
        entitled and the customer's rows were removed

    Raises:
        stripe.error.StripeError: Stripe unreachable; delivery is retried
        ValueError: Entitled subscription without metadata.user_id
    """
    stripe_subscription = stripe_service.retrieve_subscription(subscription_id)

    status = stripe_subscription["status"]
    customer_id = _stripe_id(stripe_subscription["customer"])

    if status not in ENTITLED_STATUSES:
        logger.info(f"Subscription not entitled: subscription_id={subscription_id}, status={status}")
        _delete_by_customer(db, customer_id)
        return None

    metadata = stripe_subscription.get("metadata") or {}
    user_id = metadata.get("user_id")
    if not user_id:
        raise ValueError(f"user_id missing from metadata of subscription_id={subscription_id}")

    price_id = _stripe_id(_first_item(stripe_subscription).get("price"))
    period_end = _current_period_end(stripe_subscription)
    cancel_at_period_end = bool(stripe_subscription.get("cancel_at_period_end"))

    try:
        subscription, created = get_or_create_subscription(db, user_id)
        subscription.stripe_customer_id = customer_id
        subscription.stripe_subscription_id = stripe_subscription["id"]
        subscription.stripe_price_id = price_id or ""
        subscription.stripe_current_period_end = period_end
        subscription.stripe_cancel_at_period_end = cancel_at_period_end
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to sync subscription: user_id={user_id}, subscription_id={subscription_id}")
        raise

    logger.info(
        f"Subscription synced: user_id={user_id}, subscription_id={subscription_id}, status={status}, "
        f"price_id={price_id}, period_end={period_end}, cancel_at_period_end={cancel_at_period_end}, created={created}"
    )
    return subscription


def handle_subscription_deleted(db: Session, subscription_data: Dict) -> int:
    """
    Handle customer.subscription.deleted.

    Removes the customer's subscription rows straight from the payload, no
    re-fetch. Point history is kept. A deleted event is always treated as
    terminal, even if a logically later update was already processed.
    """
    customer_id = _stripe_id(subscription_data.get("customer"))
    logger.info(f"Subscription deleted: subscription_id={subscription_data.get('id')}, customer_id={customer_id}")
    return _delete_by_customer(db, customer_id)


def handle_checkout_session_completed(db: Session, session_data: Dict) -> BillingCustomer:
    """
    Handle checkout.session.completed.

    Records which Stripe customer belongs to the user so the billing portal
    can be opened later. Does not touch the points ledger.
    """
    metadata = session_data.get("metadata") or {}
    user_id = metadata.get("user_id") or session_data.get("client_reference_id")
    customer_id = _stripe_id(session_data.get("customer"))

    if not user_id:
        raise ValueError("User ID is missing in session metadata")
    if not customer_id:
        raise ValueError(f"Customer ID is missing in checkout session for user_id={user_id}")

    try:
        customer = db.get(BillingCustomer, user_id)
        if customer is None:
            customer = BillingCustomer(user_id=user_id, stripe_customer_id=customer_id)
            try:
                with db.begin_nested():
                    db.add(customer)
            except IntegrityError:
                customer = db.get(BillingCustomer, user_id, populate_existing=True)
        customer.stripe_customer_id = customer_id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to record billing customer: user_id={user_id}")
        raise

    logger.info(f"Checkout completed: user_id={user_id}, customer_id={customer_id}")
    return customer


def get_customer_id_for_user(db: Session, user_id: str) -> Optional[str]:
    """Stripe customer id for the billing portal; None for never-paid users."""
    customer = db.get(BillingCustomer, user_id)
    if customer is not None:
        return customer.stripe_customer_id

    subscription = db.get(UserSubscription, user_id)
    if subscription is not None and subscription.stripe_customer_id != UserSubscription.placeholder_customer_id(user_id):
        return subscription.stripe_customer_id
    return None


def process_event(db: Session, event) -> bool:
    """
    Dispatch a verified Stripe event.

    Returns:
        True if the event type is handled, False if it was ignored
    """
    event_type = event["type"]
    data_object = event["data"]["object"]

    if event_type == "checkout.session.completed":
        handle_checkout_session_completed(db, data_object)
    elif event_type in SUBSCRIPTION_EVENTS:
        handle_subscription_created_or_updated(db, data_object["id"])
    elif event_type == "customer.subscription.deleted":
        handle_subscription_deleted(db, data_object)
    else:
        logger.info(f"Unhandled event type: {event_type}")
        return False
    return True
