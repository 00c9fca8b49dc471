"""
Feature gating by subscription tier.

Tier-only permissions (no points involved). Point-priced actions are gated
by app.core.points_guard instead.
Supports 3-tier plan system: free, pro, pro_plus
"""
import logging
from fastapi import HTTPException, status
from app.core import config
from app.core.plan_limits import get_max_resumes

logger = logging.getLogger(__name__)


def can_create_resume(tier: str, current_resume_count: int) -> bool:
    """
    Check whether another resume may be created.

    free: 1, pro: 3, pro_plus: unlimited
    """
    max_resumes = get_max_resumes(tier)
    if max_resumes is None:
        return True
    return current_resume_count < max_resumes


def can_use_ai_tools(tier: str) -> bool:
    """AI tools are available on every tier except free."""
    return tier != "free"


def can_use_customizations(tier: str) -> bool:
    """Advanced resume customizations are pro_plus only."""
    return tier == "pro_plus"


def _paywall(feature: str, tier: str, required_plan: str, message: str, **extra) -> HTTPException:
    logger.warning(f"Feature access denied: tier={tier}, feature={feature}")
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "detail": message,
            "code": "PAYWALL",
            "feature": feature,
            "upgrade_url": f"{config.FRONTEND_URL}/billing",
            "required_plan": required_plan,
            **extra,
        }
    )


def enforce_resume_limit(tier: str, current_resume_count: int) -> None:
    """Raise 402 when the tier's resume limit is reached."""
    if can_create_resume(tier, current_resume_count):
        return
    required_plan = "pro" if tier == "free" else "pro_plus"
    raise _paywall(
        "resume_create",
        tier,
        required_plan,
        "Maximum resume count reached for this subscription level.",
        limit=get_max_resumes(tier),
        used=current_resume_count,
    )


def enforce_customizations(tier: str) -> None:
    """Raise 402 unless the tier includes advanced customizations."""
    if can_use_customizations(tier):
        return
    raise _paywall(
        "customizations",
        tier,
        "pro_plus",
        "Customizations are not allowed for this subscription level.",
    )
