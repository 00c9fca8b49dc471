from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from app.db.base import Base
from app.db.models.subscription import utcnow


class PointsTransaction(Base):
    """
    Append-only points ledger.

    delta is signed (positive = credit, negative = debit). Rows are never
    updated or deleted; monthly_allowance rows double as the idempotency
    record for periodic grants.
    """
    __tablename__ = "points_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    delta = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_points_tx_user_reason_created", "user_id", "reason", "created_at"),
    )
