from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.core.security import decode_user_id
from app.db.session import get_db
from app.services.subscription_service import resolve_tier

# Tokens come from the external identity service; tokenUrl is documentation only
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> str:
    """Get current user id from JWT token."""
    user_id = decode_user_id(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_current_tier(
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> str:
    """
    Subscription tier for the current request.

    FastAPI caches dependency results per request, which is exactly the
    lifetime the tier may be cached for.
    """
    return resolve_tier(db, user_id)
