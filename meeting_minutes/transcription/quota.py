"""Quota Guard: tier limit checks before and after a transcription.

The pre-check only blocks when a monthly limit is *already* reached, or the
file is over the tier's size ceiling. A job that crosses a limit is allowed
to finish; ``post_check`` reports it as a non-blocking warning instead.
"""

from uuid import UUID

from meeting_minutes.core.logging import get_logger
from meeting_minutes.core.results import settle
from meeting_minutes.transcription.schemas import LimitCheck, LimitExceededWarning
from meeting_minutes.transcription.usage import UNLIMITED, UsageRecorder, is_exceeded

logger = get_logger(__name__)


class QuotaGuard:
    def __init__(self, recorder: UsageRecorder, upgrade_url: str = "/upgrade") -> None:
        self._recorder = recorder
        self.upgrade_url = upgrade_url

    async def check_limits(
        self,
        user_id: UUID,
        tier: str,
        *,
        file_size_mb: float | None = None,
    ) -> LimitCheck:
        """Decide whether ``user_id`` may start a job.

        Fails open when usage cannot be computed because storage is down.
        """
        limits = await self._recorder.get_tier_limits(tier)
        usage = settle(
            await self._recorder.get_current_usage(user_id, tier),
            "usage_lookup",
            user_id=str(user_id),
        )

        if usage is None:
            logger.warning("quota_check_failed_open", user_id=str(user_id), tier=tier)
            return LimitCheck(
                can_proceed=True,
                reason="Usage information unavailable - allowing request",
                tier_limits=limits,
            )

        month = usage.current_month

        if is_exceeded(month.transcriptions_used, limits.monthly_transcription_limit):
            return LimitCheck(
                can_proceed=False,
                reason=(
                    "Monthly transcription limit exceeded. You have used all your "
                    "available transcriptions for this month."
                ),
                usage_stats=usage,
                tier_limits=limits,
            )

        if (
            file_size_mb
            and limits.max_file_size_mb != UNLIMITED
            and file_size_mb > limits.max_file_size_mb
        ):
            return LimitCheck(
                can_proceed=False,
                reason=f"File size exceeds {limits.max_file_size_mb}MB limit for {tier} tier",
                usage_stats=usage,
                tier_limits=limits,
            )

        if is_exceeded(month.total_duration_minutes, limits.max_duration_minutes):
            return LimitCheck(
                can_proceed=False,
                reason=(
                    "Monthly duration limit exceeded. You have used all your available "
                    f"{limits.max_duration_minutes} minutes for this month."
                ),
                usage_stats=usage,
                tier_limits=limits,
            )

        return LimitCheck(can_proceed=True, usage_stats=usage, tier_limits=limits)

    async def post_check(
        self,
        user_id: UUID,
        tier: str,
        *,
        duration_seconds: float | None,
        usage_cost: int = 1,
    ) -> LimitExceededWarning | None:
        """Warning when the just-finished, not yet persisted job crossed a limit."""
        usage = settle(
            await self._recorder.get_current_usage(user_id, tier),
            "post_check",
            user_id=str(user_id),
        )
        if usage is None:
            return None

        limits = await self._recorder.get_tier_limits(tier)
        duration_after = usage.current_month.total_duration_minutes + (duration_seconds or 0) / 60
        transcriptions_after = usage.current_month.transcriptions_used + usage_cost

        if (
            limits.max_duration_minutes != UNLIMITED
            and duration_after > limits.max_duration_minutes
        ):
            return LimitExceededWarning(
                type="duration_exceeded",
                message=(
                    "This transcription pushed you over your monthly "
                    f"{limits.max_duration_minutes} minute limit."
                ),
                upgrade_url=self.upgrade_url,
            )

        if is_exceeded(transcriptions_after, limits.monthly_transcription_limit):
            return LimitExceededWarning(
                type="transcription_limit_reached",
                message=(
                    "You have reached your monthly limit of "
                    f"{limits.monthly_transcription_limit} transcriptions."
                ),
                upgrade_url=self.upgrade_url,
            )

        return None
