"""
Pydantic schemas for points, permission and voice interview endpoints.

Response bodies use the camelCase keys the web client consumes.
"""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class PointsBalanceResponse(BaseModel):
    """Response schema for GET /points/balance."""
    points: int = Field(..., description="Spendable points")
    is_new_user: Optional[bool] = Field(None, alias="isNewUser", description="Subscription record was created by this call")
    points_granted: Optional[int] = Field(None, alias="pointsGranted", description="Starter points granted by this call")
    message: Optional[str] = Field(None, description="Welcome message when starter points were granted")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "points": 30,
                "isNewUser": True,
                "pointsGranted": 30,
                "message": "Welcome! You've received 30 starter points."
            }
        }


class PointsTransactionItem(BaseModel):
    """A single ledger row."""
    id: int
    delta: int
    reason: str
    metadata: Optional[Any] = None
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True


class PointsHistoryResponse(BaseModel):
    """Response schema for GET /points/transactions."""
    points: int
    transactions: List[PointsTransactionItem]


class SpendPointsRequest(BaseModel):
    """Request schema for POST /points/spend."""
    action: str = Field(..., description="Point-priced action, e.g. cover_letter")
    metadata: Optional[dict] = Field(None, description="Stored on the ledger row")

    class Config:
        json_schema_extra = {
            "example": {
                "action": "cover_letter",
                "metadata": {"resumeId": "res_123"}
            }
        }


class SpendPointsResponse(BaseModel):
    """Response schema for a successful spend."""
    ok: bool = True
    action: str
    cost: int
    points: int


class AIToolsPermissionResponse(BaseModel):
    """Response schema for GET /permissions/ai-tools."""
    can_use: bool = Field(..., alias="canUse")
    subscription_level: str = Field(..., alias="subscriptionLevel")
    points: int
    required_points: int = Field(..., alias="requiredPoints")

    class Config:
        populate_by_name = True


class VoiceInterviewStatusResponse(BaseModel):
    """Response schema for GET /voice-interview-status."""
    can_use: bool = Field(..., alias="canUse")
    used: int
    limit: int

    class Config:
        populate_by_name = True


class VoiceSessionResponse(BaseModel):
    """Response schema for POST /voice-interviews/sessions."""
    ok: bool = True
    used: int
    limit: int
    points: int
