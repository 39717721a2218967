"""Pydantic models shared by the transcription services and the API.

Every model serializes with camelCase keys (``transcriptText``,
``limitExceeded``) and accepts either spelling on input.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SpeakerSegment(CamelModel):
    """Contiguous run of text attributed to one speaker."""

    speaker_id: str
    speaker_label: str
    start: float
    end: float
    text: str


class TierLimits(CamelModel):
    """Quota ceilings for a tier. -1 disables a check."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    tier: str
    monthly_transcription_limit: int
    max_file_size_mb: int = Field(alias="maxFileSizeMB")
    max_duration_minutes: int
    features: dict[str, Any] = Field(default_factory=dict)


class MonthlyUsage(CamelModel):
    transcriptions_used: int = 0
    transcriptions_limit: int
    total_duration_minutes: float = 0.0
    total_file_size_mb: float = Field(default=0.0, alias="totalFileSizeMB")


class UsageStats(CamelModel):
    """Current calendar month usage, recomputed for every check."""

    current_month: MonthlyUsage
    tier: str
    reset_date: datetime | None = None
    is_limit_exceeded: bool = False


class LimitCheck(CamelModel):
    """Outcome of a quota pre-check."""

    can_proceed: bool
    reason: str | None = None
    usage_stats: UsageStats | None = None
    tier_limits: TierLimits | None = None


class LimitExceededWarning(CamelModel):
    """Non-blocking notice that the finished job pushed usage over a limit."""

    type: Literal["duration_exceeded", "transcription_limit_reached"]
    message: str
    upgrade_url: str


class JobMetadata(CamelModel):
    """Artifacts stored in a job's ``metadata`` column."""

    transcript_text: str | None = None
    transcript_srt: str | None = None
    minutes: str | None = None
    segments: list[SpeakerSegment] | None = None
    provider_job: dict[str, Any] | None = None
    transcript_json: dict[str, Any] | None = None
    summary: Any = None
    sentiment: Any = None
    topics: Any = None
    translations: Any = None
    warnings: list[str] | None = None
    limit_exceeded: LimitExceededWarning | None = None
    meeting_context: str | None = None
    processed_at: datetime | None = None

    def to_column(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_column(cls, value: dict[str, Any] | None) -> "JobMetadata":
        return cls.model_validate(value or {})


class TranscriptionOptions(CamelModel):
    """Caller-requested provider options from the upload form."""

    language: str = "en"
    diarization_mode: Literal["none", "speaker", "channel"] = "speaker"
    speaker_sensitivity: float | None = None
    meeting_context: str = ""
    enable_summarization: bool = False
    summary_type: str | None = None
    summary_length: str | None = None
    summary_content_type: str | None = None
    enable_sentiment: bool = False
    enable_topics: bool = False
    topics: list[str] = Field(default_factory=list)
    translation_languages: list[str] = Field(default_factory=list)


class UploadedAudio(BaseModel):
    """Audio upload read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)


class TranscriptionResult(CamelModel):
    """Artifacts of a completed transcription."""

    status: str = "completed"
    job_id: str | None = None
    filename: str | None = None
    segments: list[SpeakerSegment] = Field(default_factory=list)
    minutes: str | None = None
    transcript_text: str | None = None
    transcript_srt: str | None = None
    transcript_json: dict[str, Any] | None = None
    job: dict[str, Any] | None = None
    summary: Any = None
    sentiment: Any = None
    topics: Any = None
    translations: Any = None
    warnings: list[str] = Field(default_factory=list)
    limit_exceeded: LimitExceededWarning | None = None


class SubmissionResponse(CamelModel):
    """Asynchronous submission accepted; poll the status endpoint."""

    status: str = "processing"
    job_id: str
    filename: str
    warnings: list[str] = Field(default_factory=list)


class JobStatusResponse(TranscriptionResult):
    """Status endpoint body. Artifact fields are only set once completed."""

    status: Literal["processing", "completed", "failed", "unknown"]
    progress: int | None = None
    job_status: str | None = None
    error: str | None = None
    details: Any = None


class UsageResponse(CamelModel):
    usage_stats: UsageStats | None
    tier_limits: TierLimits


class UsageResetResponse(CamelModel):
    profiles_updated: int
    jobs_deleted: int
    next_reset_date: datetime
