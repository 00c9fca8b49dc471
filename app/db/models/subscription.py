from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.db.base import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; all ledger columns store naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserSubscription(Base):
    """
    One row per user: Stripe linkage, points balance and voice usage counter.

    Free users carry placeholder Stripe ids (free_<user_id>) so the row can
    exist before any purchase. An empty stripe_price_id means no paid price.
    """
    __tablename__ = "user_subscriptions"

    user_id = Column(String, primary_key=True)

    stripe_customer_id = Column(String, nullable=False, index=True)
    stripe_subscription_id = Column(String, nullable=False, index=True)
    stripe_price_id = Column(String, nullable=False, default="")
    stripe_current_period_end = Column(DateTime, nullable=True)
    stripe_cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    points_balance = Column(Integer, nullable=False, default=0)
    points_allowance = Column(Integer, nullable=False, default=0)
    starter_points_granted_at = Column(DateTime, nullable=True)

    voice_interviews_used = Column(Integer, nullable=False, default=0)
    voice_interviews_reset_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @staticmethod
    def placeholder_customer_id(user_id: str) -> str:
        return f"free_{user_id}"

    @staticmethod
    def placeholder_subscription_id(user_id: str) -> str:
        return f"free_sub_{user_id}"

    def is_active(self, now: datetime = None) -> bool:
        """Active only while now < stripe_current_period_end."""
        if self.stripe_current_period_end is None:
            return False
        return (now or utcnow()) < self.stripe_current_period_end
