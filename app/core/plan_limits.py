"""
Plan and points configuration.

Single source of truth for point costs, grants and per-tier limits.
None means unlimited for that tier.
"""
from typing import Dict, Optional

# Point cost per gated action, debited before the AI call runs
POINT_COSTS: Dict[str, int] = {
    "enhance_experience": 2,
    "resume_summary": 4,
    "cover_letter": 5,
    "cover_letter_enhance": 5,
    "voice_session_start": 10,
    "feedback": 0,
}

# One-time grant on first balance check
STARTER_POINTS = 30

# Ledger reasons written by the grant engine
REASON_STARTER_BONUS = "starter_bonus"
REASON_MONTHLY_ALLOWANCE = "monthly_allowance"

# Points credited once per billing period
MONTHLY_ALLOWANCE: Dict[str, int] = {
    "free": 0,
    "pro": 40,
    "pro_plus": 80,
}

# Voice interviews per billing period
VOICE_INTERVIEW_LIMITS: Dict[str, int] = {
    "free": 0,
    "pro": 0,
    "pro_plus": 5,
}

# Saved resumes per tier
MAX_RESUMES: Dict[str, Optional[int]] = {
    "free": 1,
    "pro": 3,
    "pro_plus": None,  # Unlimited
}


def get_point_cost(action: str) -> Optional[int]:
    """Cost of an action, or None when the action is unknown."""
    return POINT_COSTS.get(action)


def get_monthly_allowance(tier: Optional[str]) -> int:
    return MONTHLY_ALLOWANCE.get(tier or "free", 0)


def get_voice_interview_limit(tier: Optional[str]) -> int:
    return VOICE_INTERVIEW_LIMITS.get(tier or "free", 0)


def get_max_resumes(tier: Optional[str]) -> Optional[int]:
    tier = tier if tier in MAX_RESUMES else "free"
    return MAX_RESUMES[tier]
