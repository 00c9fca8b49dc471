"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.subscription import UserSubscription
from app.db.models.points_transaction import PointsTransaction
from app.db.models.billing_customer import BillingCustomer

__all__ = [
    "UserSubscription",
    "PointsTransaction",
    "BillingCustomer",
]
