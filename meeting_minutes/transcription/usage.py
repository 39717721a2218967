"""Usage Recorder: job lifecycle persistence and current-month usage.

Every public coroutine returns ``Ok`` or ``Err`` rather than raising on
storage failures; call sites pass the outcome to ``settle`` with the step
name so the policy table decides whether the error is logged or re-raised.
"""

import calendar
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from meeting_minutes.core.errors import PersistenceError
from meeting_minutes.core.logging import get_logger
from meeting_minutes.core.results import Err, Ok, Result, settle
from meeting_minutes.transcription.models import JobStatus, Tier
from meeting_minutes.transcription.repository import JobRecord, TranscriptionRepository
from meeting_minutes.transcription.schemas import (
    JobMetadata,
    MonthlyUsage,
    TierLimits,
    UsageResetResponse,
    UsageStats,
)

logger = get_logger(__name__)

T = TypeVar("T")

UNLIMITED = -1

_BASE_FEATURES = {
    "basic_transcription": True,
    "speaker_diarization": True,
    "summaries": True,
    "translations": True,
    "admin_dashboard": False,
    "user_management": False,
}

DEFAULT_TIER_LIMITS: dict[str, TierLimits] = {
    Tier.FREE.value: TierLimits(
        tier=Tier.FREE.value,
        monthly_transcription_limit=10,
        max_file_size_mb=150,
        max_duration_minutes=60,  # monthly total, not per file
        features=dict(_BASE_FEATURES),
    ),
    Tier.PRO.value: TierLimits(
        tier=Tier.PRO.value,
        monthly_transcription_limit=UNLIMITED,
        max_file_size_mb=UNLIMITED,
        max_duration_minutes=UNLIMITED,
        features=dict(_BASE_FEATURES),
    ),
    Tier.ADMIN.value: TierLimits(
        tier=Tier.ADMIN.value,
        monthly_transcription_limit=UNLIMITED,
        max_file_size_mb=UNLIMITED,
        max_duration_minutes=UNLIMITED,
        features={
            **_BASE_FEATURES,
            "admin_dashboard": True,
            "user_management": True,
            "all_features": True,
        },
    ),
}


def default_tier_limits(tier: str) -> TierLimits:
    """Built-in limits for ``tier``; unknown tiers get the free limits."""
    return DEFAULT_TIER_LIMITS.get(tier, DEFAULT_TIER_LIMITS[Tier.FREE.value]).model_copy(deep=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def month_start(moment: datetime) -> datetime:
    """Start of the quota window containing ``moment``."""
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_months(moment: datetime, months: int) -> datetime:
    """Same day and time ``months`` later (or earlier), clamped to month end."""
    index = moment.year * 12 + (moment.month - 1) + months
    year, month0 = divmod(index, 12)
    day = min(moment.day, calendar.monthrange(year, month0 + 1)[1])
    return moment.replace(year=year, month=month0 + 1, day=day)


def is_exceeded(used: float, limit: int) -> bool:
    """True when a limit is set and ``used`` has reached it."""
    return limit != UNLIMITED and used >= limit


class UsageRecorder:
    """
    Persists the job lifecycle and aggregates usage for the Quota Guard.

    Args:
        repository: Storage backend.
        stale_after: Age after which a ``processing`` job is considered dead.
        retention_months: Jobs older than this are deleted by the monthly reset.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        repository: TranscriptionRepository,
        *,
        stale_after: timedelta = timedelta(minutes=60),
        retention_months: int = 6,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._stale_after = stale_after
        self._retention_months = retention_months
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def _attempt(self, step: str, operation: Awaitable[T]) -> Result[T, PersistenceError]:
        try:
            return Ok(await operation)
        except PersistenceError as e:
            return Err(e)
        except (SQLAlchemyError, OSError) as e:
            logger.debug("persistence_operation_failed", step=step, error=str(e))
            return Err(PersistenceError(f"{step} failed: {e}"))

    async def record_usage(
        self,
        user_id: UUID,
        *,
        filename: str,
        tier: str,
        file_size: int | None = None,
        usage_cost: int = 1,
        provider_job_id: str | None = None,
        metadata: JobMetadata | None = None,
    ) -> Result[JobRecord, PersistenceError]:
        """Create the ``processing`` row for a newly accepted upload."""
        outcome = await self._attempt(
            "record_usage",
            self._repository.create_job(
                user_id=user_id,
                filename=filename,
                tier=tier,
                file_size=file_size,
                usage_cost=usage_cost,
                provider_job_id=provider_job_id,
                metadata=metadata.to_column() if metadata is not None else None,
                created_at=self._clock(),
            ),
        )
        if outcome.is_ok:
            logger.info("job_recorded", job_id=str(outcome.value.id), filename=filename, tier=tier)
        return outcome

    async def attach_provider_job(
        self, job: JobRecord, provider_job_id: str
    ) -> Result[None, PersistenceError]:
        return await self._attempt(
            "attach_provider_job",
            self._repository.set_provider_job_id(job.id, provider_job_id),
        )

    async def find_job(
        self,
        user_id: UUID,
        filename: str,
        provider_job_id: str | None = None,
    ) -> Result[JobRecord | None, PersistenceError]:
        return await self._attempt(
            "find_job",
            self._repository.find_job(user_id, filename, provider_job_id),
        )

    async def _transition(
        self,
        user_id: UUID,
        filename: str,
        status: JobStatus,
        provider_job_id: str | None,
        error_message: str | None,
        duration_seconds: float | None,
        metadata: JobMetadata | None,
    ) -> bool:
        job = await self._repository.find_job(user_id, filename, provider_job_id)
        if job is None:
            raise PersistenceError(f"No job recorded for {filename}")
        if job.is_terminal:
            logger.info(
                "job_already_terminal",
                job_id=str(job.id),
                status=job.status,
                requested_status=status.value,
            )
            return False

        changed = await self._repository.mark_terminal(
            job.id,
            status=status,
            completed_at=self._clock(),
            error_message=error_message,
            duration_seconds=duration_seconds,
            provider_job_id=provider_job_id,
            metadata=metadata.to_column() if metadata is not None else None,
        )
        if changed:
            logger.info(
                "job_status_updated",
                job_id=str(job.id),
                status=status.value,
                duration_seconds=duration_seconds,
            )
        return changed

    async def update_job_status(
        self,
        user_id: UUID,
        filename: str,
        status: JobStatus,
        *,
        provider_job_id: str | None = None,
        error_message: str | None = None,
        duration_seconds: float | None = None,
        metadata: JobMetadata | None = None,
    ) -> Result[bool, PersistenceError]:
        """Move the user's latest job for ``filename`` to a terminal state.

        Idempotent: a job that is already terminal is left untouched and the
        outcome is ``Ok(False)``.
        """
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        return await self._attempt(
            "update_job_status",
            self._transition(
                user_id,
                filename,
                status,
                provider_job_id,
                error_message,
                duration_seconds,
                metadata,
            ),
        )

    async def get_tier_limits(self, tier: str) -> TierLimits:
        """Stored limits for ``tier``, or the built-in defaults.

        Never writes; seeding tier rows is the bootstrap's job.
        """
        outcome = await self._attempt("tier_limits", self._repository.get_tier_limits(tier))
        if outcome.is_ok and outcome.value is not None:
            return outcome.value
        if not outcome.is_ok:
            logger.warning("tier_limits_lookup_failed", tier=tier, error=str(outcome.error))
        return default_tier_limits(tier)

    async def expire_stale_jobs(self, user_id: UUID) -> Result[int, PersistenceError]:
        """Fail ``processing`` jobs that outlived the request time budget."""
        now = self._clock()
        outcome = await self._attempt(
            "expire_stale",
            self._repository.fail_stale_jobs(
                user_id,
                now - self._stale_after,
                error_message="Job timed out before completion",
                completed_at=now,
            ),
        )
        if outcome.is_ok and outcome.value:
            logger.warning("stale_jobs_failed", user_id=str(user_id), count=outcome.value)
        return outcome

    async def _current_usage(self, user_id: UUID, tier: str | None) -> UsageStats:
        # Profile row is optional; it only supplies a stored tier and reset date
        profile = await self._repository.get_profile(user_id)
        effective_tier = tier or (profile.tier if profile is not None else Tier.FREE.value)
        limits = await self.get_tier_limits(effective_tier)
        totals = await self._repository.aggregate_usage(user_id, month_start(self._clock()))

        duration_minutes = totals.duration_seconds / 60
        return UsageStats(
            current_month=MonthlyUsage(
                transcriptions_used=totals.usage_cost,
                transcriptions_limit=limits.monthly_transcription_limit,
                total_duration_minutes=duration_minutes,
                total_file_size_mb=totals.file_size_bytes / (1024 * 1024),
            ),
            tier=effective_tier,
            reset_date=profile.usage_reset_date if profile is not None else None,
            is_limit_exceeded=(
                is_exceeded(totals.usage_cost, limits.monthly_transcription_limit)
                or is_exceeded(duration_minutes, limits.max_duration_minutes)
            ),
        )

    async def get_current_usage(
        self, user_id: UUID, tier: str | None = None
    ) -> Result[UsageStats, PersistenceError]:
        """Completed-job usage for the current calendar month.

        Stale ``processing`` jobs are failed first. ``tier`` overrides the
        profile's tier when computing limits; without either the free limits
        apply.
        """
        settle(await self.expire_stale_jobs(user_id), "expire_stale", user_id=str(user_id))
        return await self._attempt("usage_lookup", self._current_usage(user_id, tier))

    async def ensure_default_tier_limits(self) -> Result[None, PersistenceError]:
        """Create or refresh the free, pro and admin tier rows."""
        outcome = await self._attempt(
            "bootstrap",
            self._repository.upsert_tier_limits(list(DEFAULT_TIER_LIMITS.values())),
        )
        if outcome.is_ok:
            logger.info("tier_limits_ensured", tiers=list(DEFAULT_TIER_LIMITS))
        return outcome

    async def _reset(self) -> UsageResetResponse:
        now = self._clock()
        next_reset = shift_months(month_start(now), 1)
        profiles = await self._repository.reset_usage_dates(next_reset)
        deleted = await self._repository.delete_jobs_before(
            shift_months(now, -self._retention_months)
        )
        return UsageResetResponse(
            profiles_updated=profiles,
            jobs_deleted=deleted,
            next_reset_date=next_reset,
        )

    async def monthly_reset(self) -> Result[UsageResetResponse, PersistenceError]:
        """Advance every profile's reset date and drop expired job history."""
        outcome = await self._attempt("monthly_reset", self._reset())
        if outcome.is_ok:
            logger.info(
                "monthly_usage_reset",
                profiles_updated=outcome.value.profiles_updated,
                jobs_deleted=outcome.value.jobs_deleted,
                next_reset_date=outcome.value.next_reset_date.isoformat(),
            )
        return outcome
