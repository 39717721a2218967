"""Database models for users' tiers, tier limits and transcription jobs."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from meeting_minutes.core.database.base import Base, TimestampMixin, UUIDMixin


class Tier(str, Enum):
    """Service level governing quota ceilings and feature flags."""

    FREE = "free"
    PRO = "pro"
    ADMIN = "admin"


class JobStatus(str, Enum):
    """Transcription job status. Only PROCESSING is non-terminal."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class UserProfile(Base, TimestampMixin):
    """Profile row created by the identity layer; holds the user's tier."""

    __tablename__ = "user_profiles"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default=Tier.FREE.value)
    usage_reset_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<UserProfile {self.email} ({self.tier})>"


class TierLimit(Base, TimestampMixin):
    """Quota ceilings for one tier. -1 means unlimited."""

    __tablename__ = "tier_limits"

    tier: Mapped[str] = mapped_column(String(20), primary_key=True)
    monthly_transcription_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    max_file_size_mb: Mapped[int] = mapped_column(Integer, nullable=False)
    max_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    features: Mapped[dict] = mapped_column(JSONB, default=dict)

    def __repr__(self) -> str:
        return f"<TierLimit {self.tier}>"


class TranscriptionJob(Base, UUIDMixin):
    """One upload attempt, tracked from processing to a terminal state."""

    __tablename__ = "transcription_jobs"

    user_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    filename: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_size: Mapped[int | None] = mapped_column(BigInteger)  # bytes
    duration_seconds: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.PROCESSING.value, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    usage_cost: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    provider_job_id: Mapped[str | None] = mapped_column(String(100))

    # "metadata" is reserved on declarative classes
    job_metadata: Mapped[dict | None] = mapped_column("metadata", JSONB)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed', 'cancelled')",
            name="ck_transcription_jobs_status",
        ),
        Index("idx_transcription_jobs_user_created", "user_id", "created_at"),
        Index("idx_transcription_jobs_user_filename", "user_id", "filename"),
        Index("idx_transcription_jobs_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<TranscriptionJob {self.id} {self.filename}:{self.status}>"
