import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core import config
from app.core.logging_config import setup_logging
from app.api.routes import billing, billing_webhook, health, permissions, points, voice_interview


setup_logging(config.LOG_LEVEL, config.LOG_DIR)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
    elif config.DATABASE_URL.startswith("sqlite"):
        from app.db.init_db import init_db
        init_db()
    logger.info("Points API started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Points Ledger API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(points.router)
app.include_router(permissions.router)
app.include_router(voice_interview.router)
app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Points API running"}
