from sqlalchemy import Column, DateTime, String

from app.db.base import Base
from app.db.models.subscription import utcnow


class BillingCustomer(Base):
    """
    Identity-side mapping from a user to their Stripe customer.

    Written on checkout.session.completed; read when opening the billing
    portal. Independent of the points ledger.
    """
    __tablename__ = "billing_customers"

    user_id = Column(String, primary_key=True)
    stripe_customer_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
