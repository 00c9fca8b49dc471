"""
Voice interview entitlement endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core import config
from app.core.auth_dependency import get_current_user
from app.core.plan_limits import POINT_COSTS
from app.schemas.points import VoiceInterviewStatusResponse, VoiceSessionResponse
from app.services.voice_interview_service import get_voice_interview_status, start_voice_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Voice Interview"])


@router.get("/voice-interview-status", response_model=VoiceInterviewStatusResponse)
def voice_interview_status(
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remaining voice interviews for the current billing period."""
    result = get_voice_interview_status(db, user_id)
    return VoiceInterviewStatusResponse(can_use=result.can_use, used=result.used, limit=result.limit)


@router.post("/voice-interviews/sessions", response_model=VoiceSessionResponse, status_code=status.HTTP_201_CREATED)
def create_voice_session(
    metadata: Optional[dict] = Body(None, embed=True),
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Start a voice interview.

    Raises:
        HTTPException 403: Period limit reached (or tier has no voice interviews)
        HTTPException 402: Not enough points for voice_session_start
    """
    result = start_voice_session(db, user_id, metadata)

    if result.reason == "limit_reached":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "voice_interview_limit_reached",
                "used": result.used,
                "limit": result.limit,
                "upgrade_url": f"{config.FRONTEND_URL}/billing",
                "message": result.message,
            }
        )
    if result.reason == "insufficient_points":
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "insufficient_points",
                "action": "voice_session_start",
                "required": POINT_COSTS["voice_session_start"],
                "points": result.balance,
                "message": result.message,
            }
        )

    return VoiceSessionResponse(used=result.used, limit=result.limit, points=result.balance)
