"""Persistence interface for transcription jobs, profiles and tier limits."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meeting_minutes.transcription.models import JobStatus, TierLimit, TranscriptionJob, UserProfile
from meeting_minutes.transcription.schemas import TierLimits


@dataclass
class JobRecord:
    """Detached view of a ``transcription_jobs`` row."""

    id: UUID
    user_id: UUID
    filename: str
    status: str
    tier: str
    created_at: datetime
    file_size: int | None = None
    duration_seconds: float | None = None
    usage_cost: int = 1
    error_message: str | None = None
    provider_job_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status).is_terminal

    @classmethod
    def from_model(cls, job: TranscriptionJob) -> "JobRecord":
        return cls(
            id=job.id,
            user_id=job.user_id,
            filename=job.filename,
            status=job.status,
            tier=job.tier,
            created_at=job.created_at,
            file_size=job.file_size,
            duration_seconds=job.duration_seconds,
            usage_cost=job.usage_cost,
            error_message=job.error_message,
            provider_job_id=job.provider_job_id,
            metadata=dict(job.job_metadata or {}),
            completed_at=job.completed_at,
        )


@dataclass
class ProfileRecord:
    id: UUID
    tier: str
    usage_reset_date: datetime | None = None


@dataclass
class UsageTotals:
    """Completed-job sums over a window."""

    job_count: int = 0
    usage_cost: int = 0
    duration_seconds: float = 0.0
    file_size_bytes: int = 0


class TranscriptionRepository(Protocol):
    """Storage operations the transcription pipeline depends on."""

    async def create_job(
        self,
        *,
        user_id: UUID,
        filename: str,
        tier: str,
        file_size: int | None = None,
        usage_cost: int = 1,
        provider_job_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime,
    ) -> JobRecord: ...

    async def find_job(
        self,
        user_id: UUID,
        filename: str,
        provider_job_id: str | None = None,
    ) -> JobRecord | None:
        """Latest job bound to ``provider_job_id``.

        Falls back to the latest job for ``filename``; with a provider job id
        given, only rows not yet bound to any provider job qualify.
        """

    async def set_provider_job_id(self, job_id: UUID, provider_job_id: str) -> None: ...

    async def mark_terminal(
        self,
        job_id: UUID,
        *,
        status: JobStatus,
        completed_at: datetime,
        error_message: str | None = None,
        duration_seconds: float | None = None,
        provider_job_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool: ...

    async def get_profile(self, user_id: UUID) -> ProfileRecord | None: ...

    async def get_tier_limits(self, tier: str) -> TierLimits | None: ...

    async def upsert_tier_limits(self, limits: list[TierLimits]) -> None: ...

    async def aggregate_usage(self, user_id: UUID, since: datetime) -> UsageTotals: ...

    async def fail_stale_jobs(
        self,
        user_id: UUID,
        before: datetime,
        *,
        error_message: str,
        completed_at: datetime,
    ) -> int: ...

    async def delete_jobs_before(self, before: datetime) -> int: ...

    async def reset_usage_dates(self, reset_date: datetime) -> int: ...


class SqlTranscriptionRepository:
    """``TranscriptionRepository`` backed by SQLAlchemy async sessions.

    Each method runs in its own short session and commits immediately, so a
    failure in one accounting step never rolls back another.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_job(
        self,
        *,
        user_id: UUID,
        filename: str,
        tier: str,
        file_size: int | None = None,
        usage_cost: int = 1,
        provider_job_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime,
    ) -> JobRecord:
        job = TranscriptionJob(
            user_id=user_id,
            filename=filename,
            file_size=file_size,
            tier=tier,
            usage_cost=usage_cost,
            status=JobStatus.PROCESSING.value,
            provider_job_id=provider_job_id,
            job_metadata=metadata,
            created_at=created_at,
        )
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
            return JobRecord.from_model(job)

    async def find_job(
        self,
        user_id: UUID,
        filename: str,
        provider_job_id: str | None = None,
    ) -> JobRecord | None:
        async with self._session_factory() as session:
            if provider_job_id:
                result = await session.execute(
                    select(TranscriptionJob)
                    .where(
                        TranscriptionJob.user_id == user_id,
                        TranscriptionJob.provider_job_id == provider_job_id,
                    )
                    .order_by(TranscriptionJob.created_at.desc())
                    .limit(1)
                )
                job = result.scalar_one_or_none()
                if job is not None:
                    return JobRecord.from_model(job)

            query = select(TranscriptionJob).where(
                TranscriptionJob.user_id == user_id,
                TranscriptionJob.filename == filename,
            )
            if provider_job_id:
                # Rows already bound to another provider job belong to another upload
                query = query.where(TranscriptionJob.provider_job_id.is_(None))
            result = await session.execute(
                query.order_by(TranscriptionJob.created_at.desc())
                .limit(1)
            )
            job = result.scalar_one_or_none()
            return JobRecord.from_model(job) if job is not None else None

    async def set_provider_job_id(self, job_id: UUID, provider_job_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(TranscriptionJob)
                .where(TranscriptionJob.id == job_id)
                .values(provider_job_id=provider_job_id)
            )
            await session.commit()

    async def mark_terminal(
        self,
        job_id: UUID,
        *,
        status: JobStatus,
        completed_at: datetime,
        error_message: str | None = None,
        duration_seconds: float | None = None,
        provider_job_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": status.value, "completed_at": completed_at}
        if error_message is not None:
            values["error_message"] = error_message
        if duration_seconds is not None:
            values["duration_seconds"] = duration_seconds
        if provider_job_id is not None:
            values["provider_job_id"] = provider_job_id
        if metadata is not None:
            values["job_metadata"] = metadata

        async with self._session_factory() as session:
            # Only a processing row may transition
            result = await session.execute(
                update(TranscriptionJob)
                .where(
                    TranscriptionJob.id == job_id,
                    TranscriptionJob.status == JobStatus.PROCESSING.value,
                )
                .values(**values)
            )
            await session.commit()
            return result.rowcount > 0

    async def get_profile(self, user_id: UUID) -> ProfileRecord | None:
        async with self._session_factory() as session:
            profile = await session.get(UserProfile, user_id)
            if profile is None:
                return None
            return ProfileRecord(
                id=profile.id,
                tier=profile.tier,
                usage_reset_date=profile.usage_reset_date,
            )

    async def get_tier_limits(self, tier: str) -> TierLimits | None:
        async with self._session_factory() as session:
            row = await session.get(TierLimit, tier)
            return TierLimits.model_validate(row) if row is not None else None

    async def upsert_tier_limits(self, limits: list[TierLimits]) -> None:
        async with self._session_factory() as session:
            for limit in limits:
                values = limit.model_dump(by_alias=False)
                stmt = insert(TierLimit).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[TierLimit.tier],
                    set_={k: v for k, v in values.items() if k != "tier"},
                )
                await session.execute(stmt)
            await session.commit()

    async def aggregate_usage(self, user_id: UUID, since: datetime) -> UsageTotals:
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    func.count(TranscriptionJob.id),
                    func.coalesce(func.sum(func.coalesce(TranscriptionJob.usage_cost, 1)), 0),
                    func.coalesce(func.sum(TranscriptionJob.duration_seconds), 0.0),
                    func.coalesce(func.sum(TranscriptionJob.file_size), 0),
                ).where(
                    TranscriptionJob.user_id == user_id,
                    TranscriptionJob.status == JobStatus.COMPLETED.value,
                    TranscriptionJob.created_at >= since,
                )
            )
            count, cost, duration, size = result.one()
            return UsageTotals(
                job_count=int(count),
                usage_cost=int(cost),
                duration_seconds=float(duration),
                file_size_bytes=int(size),
            )

    async def fail_stale_jobs(
        self,
        user_id: UUID,
        before: datetime,
        *,
        error_message: str,
        completed_at: datetime,
    ) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                update(TranscriptionJob)
                .where(
                    TranscriptionJob.user_id == user_id,
                    TranscriptionJob.status == JobStatus.PROCESSING.value,
                    TranscriptionJob.created_at < before,
                )
                .values(
                    status=JobStatus.FAILED.value,
                    error_message=error_message,
                    completed_at=completed_at,
                )
            )
            await session.commit()
            return result.rowcount

    async def delete_jobs_before(self, before: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(TranscriptionJob).where(TranscriptionJob.created_at < before)
            )
            await session.commit()
            return result.rowcount

    async def reset_usage_dates(self, reset_date: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                update(UserProfile).values(usage_reset_date=reset_date)
            )
            await session.commit()
            return result.rowcount
