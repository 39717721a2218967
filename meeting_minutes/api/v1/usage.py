"""Usage API endpoints."""

from fastapi import APIRouter

from meeting_minutes.core.auth.dependencies import CronAuthorized, CurrentIdentity
from meeting_minutes.core.results import settle
from meeting_minutes.transcription.dependencies import Services
from meeting_minutes.transcription.schemas import UsageResetResponse, UsageResponse

router = APIRouter()


@router.get("", response_model=UsageResponse)
async def current_usage(identity: CurrentIdentity, services: Services) -> UsageResponse:
    """Current month usage and the caller's tier limits."""
    stats = settle(
        await services.recorder.get_current_usage(identity.user_id, identity.tier),
        "usage_lookup",
        user_id=str(identity.user_id),
    )
    limits = await services.recorder.get_tier_limits(identity.tier)
    return UsageResponse(usage_stats=stats, tier_limits=limits)


@router.post("/reset", response_model=UsageResetResponse)
async def reset_usage(_: CronAuthorized, services: Services) -> UsageResetResponse:
    """
    Monthly usage reset, called by a scheduler.

    Advances every profile's reset date and deletes job history older than
    the retention window.
    """
    return settle(await services.recorder.monthly_reset(), "monthly_reset")
