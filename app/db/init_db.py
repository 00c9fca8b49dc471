"""
Local development schema bootstrap.

Production schema is owned by Alembic (see app/db/migrate.py).
"""
import logging

from app.db.session import engine
from app.db.base import Base
import app.db.models  # noqa: F401  registers tables on Base.metadata

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
