from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Note: Models register on Base when app.db.models is imported
# (init_db() and alembic/env.py both do this before touching metadata)
