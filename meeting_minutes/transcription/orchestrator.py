"""Transcription Orchestrator: upload to minutes, with persisted job state.

``transcribe`` is the synchronous path: validate, gate on quota, record the
job, submit to the speech-to-text provider through the degrading
configuration sequence, then wait for the provider job by repeatedly calling
``advance``. The Status Poller calls the same ``advance`` once per client
request, so both paths share one job state machine:

    processing -> completed
    processing -> failed
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from meeting_minutes.core.ai.base import ProviderJob, SpeechToTextProvider
from meeting_minutes.core.auth.jwt import Identity
from meeting_minutes.core.errors import (
    AppError,
    ClientInputError,
    PayloadTooLargeError,
    ProviderConfigRejected,
    ProviderError,
    ProviderResponseError,
    ProviderTimeout,
    QuotaExceededError,
    ServiceUnavailableError,
    TranscriptionFailedError,
    UnsupportedMediaTypeError,
)
from meeting_minutes.core.logging import bind_job_context, get_logger
from meeting_minutes.core.results import settle
from meeting_minutes.core.retry import RetryPolicy
from meeting_minutes.transcription.minutes import MinutesGenerator
from meeting_minutes.transcription.models import JobStatus
from meeting_minutes.transcription.provider_config import degradation_levels
from meeting_minutes.transcription.quota import QuotaGuard
from meeting_minutes.transcription.schemas import (
    JobMetadata,
    JobStatusResponse,
    SubmissionResponse,
    TranscriptionOptions,
    TranscriptionResult,
    UploadedAudio,
)
from meeting_minutes.transcription.segments import (
    build_segments,
    parse_events,
    render_srt,
    render_transcript_text,
)
from meeting_minutes.transcription.usage import UsageRecorder

logger = get_logger(__name__)

PROCESSING_PROGRESS = {"accepted": 25, "running": 50}
FAILED_PROVIDER_STATUSES = {"rejected", "expired"}

GENERIC_FAILURE = "Failed to process the transcription request."


@dataclass
class JobContext:
    """What ``advance`` needs to know about one logical job."""

    user_id: UUID
    tier: str
    filename: str
    provider_job_id: str | None = None
    meeting_context: str | None = None
    usage_cost: int = 1
    warnings: list[str] = field(default_factory=list)


def normalize_content_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


class TranscriptionOrchestrator:
    """
    Coordinates quota, speech-to-text, segmenting, minutes and persistence.

    Args:
        speech_to_text: Batch speech-to-text provider.
        minutes: Minutes generator.
        quota: Quota guard.
        recorder: Usage recorder.
        provider_retry: Retry policy for transient provider errors.
        max_upload_bytes: Hard upload ceiling, independent of tier.
        allowed_content_types: Accepted upload media types.
        poll_interval: Seconds between provider status checks.
        wait_budget: Seconds a synchronous request may take from acceptance
            until the provider job is done.
        sleep: Awaitable sleep, replaced in tests.
        monotonic: Monotonic clock, replaced in tests.
    """

    def __init__(
        self,
        speech_to_text: SpeechToTextProvider,
        minutes: MinutesGenerator,
        quota: QuotaGuard,
        recorder: UsageRecorder,
        *,
        provider_retry: RetryPolicy,
        max_upload_bytes: int,
        allowed_content_types: list[str],
        poll_interval: float = 2.0,
        wait_budget: float = 55.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.speech_to_text = speech_to_text
        self.minutes = minutes
        self.quota = quota
        self.recorder = recorder
        self.provider_retry = provider_retry
        self._max_upload_bytes = max_upload_bytes
        self._allowed_content_types = {normalize_content_type(t) for t in allowed_content_types}
        self._poll_interval = poll_interval
        self._wait_budget = wait_budget
        self._sleep = sleep
        self._monotonic = monotonic

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def transcribe(
        self,
        identity: Identity,
        upload: UploadedAudio | None,
        options: TranscriptionOptions,
    ) -> TranscriptionResult:
        """Run the whole pipeline and return the completed artifacts.

        The wait budget counts from acceptance, so upload and submission time
        are spent from it.
        """
        deadline = self._monotonic() + self._wait_budget
        context = await self._accept(identity, upload, options)

        try:
            await self._submit(context, upload, options)
            return await self._wait_for_completion(context, deadline)
        except AppError:
            raise
        except ProviderError as e:
            await self._fail(context, str(e))
            raise TranscriptionFailedError(
                GENERIC_FAILURE, details={"reason": str(e), "warnings": context.warnings}
            ) from e
        except Exception as e:
            logger.exception("transcription_crashed", filename=context.filename)
            await self._fail(context, str(e))
            raise TranscriptionFailedError(GENERIC_FAILURE) from e

    async def submit(
        self,
        identity: Identity,
        upload: UploadedAudio | None,
        options: TranscriptionOptions,
    ) -> SubmissionResponse:
        """Submit only; the client follows up through the Status Poller."""
        context = await self._accept(identity, upload, options)

        try:
            await self._submit(context, upload, options)
        except ProviderError as e:
            await self._fail(context, str(e))
            raise TranscriptionFailedError(
                GENERIC_FAILURE, details={"reason": str(e), "warnings": context.warnings}
            ) from e

        return SubmissionResponse(
            job_id=context.provider_job_id,
            filename=context.filename,
            warnings=context.warnings,
        )

    # -------------------------------------------------------------------------
    # Acceptance
    # -------------------------------------------------------------------------

    def ensure_configured(self) -> None:
        if not self.speech_to_text.is_configured or not self.minutes.is_configured:
            raise ServiceUnavailableError("Server is missing required credentials.")

    def validate_upload(self, upload: UploadedAudio | None) -> UploadedAudio:
        if upload is None or not upload.filename or upload.size == 0:
            raise ClientInputError('Upload an audio file under the "audio" field.')
        if upload.size > self._max_upload_bytes:
            raise PayloadTooLargeError(
                f"File is larger than the {self._max_upload_bytes // (1024 * 1024)}MB upload limit.",
                details={"fileSize": upload.size, "maxBytes": self._max_upload_bytes},
            )
        content_type = normalize_content_type(upload.content_type)
        if content_type not in self._allowed_content_types:
            raise UnsupportedMediaTypeError(
                f"Unsupported media type: {content_type or 'unknown'}",
                details={"contentType": content_type},
            )
        return upload

    async def _accept(
        self,
        identity: Identity,
        upload: UploadedAudio | None,
        options: TranscriptionOptions,
    ) -> JobContext:
        self.ensure_configured()
        upload = self.validate_upload(upload)
        bind_job_context(user_id=identity.user_id, filename=upload.filename)

        logger.info(
            "transcription_upload_received",
            content_type=upload.content_type,
            size=upload.size,
            tier=identity.tier,
        )

        check = await self.quota.check_limits(
            identity.user_id, identity.tier, file_size_mb=upload.size_mb
        )
        if not check.can_proceed:
            logger.info("usage_limit_exceeded", user_id=str(identity.user_id), reason=check.reason)
            raise QuotaExceededError(
                check.reason or "Usage limit exceeded",
                details={
                    "currentTier": identity.tier,
                    "usageStats": (
                        check.usage_stats.model_dump(mode="json", by_alias=True)
                        if check.usage_stats
                        else None
                    ),
                    "upgradeUrl": self.quota.upgrade_url,
                },
            )

        settle(
            await self.recorder.record_usage(
                identity.user_id,
                filename=upload.filename,
                tier=identity.tier,
                file_size=upload.size,
                metadata=JobMetadata(meeting_context=options.meeting_context or None),
            ),
            "record_job",
            filename=upload.filename,
        )

        return JobContext(
            user_id=identity.user_id,
            tier=identity.tier,
            filename=upload.filename,
            meeting_context=options.meeting_context or None,
        )

    # -------------------------------------------------------------------------
    # Provider interaction
    # -------------------------------------------------------------------------

    async def _submit(
        self,
        context: JobContext,
        upload: UploadedAudio,
        options: TranscriptionOptions,
    ) -> None:
        """Submit with progressively simpler configurations on rejection."""
        rejection: ProviderConfigRejected | None = None

        for level in degradation_levels(options):
            if rejection is not None and level.warning:
                context.warnings.append(level.warning)
            try:
                provider_job_id = await self.provider_retry.run(
                    lambda _attempt: self.speech_to_text.submit_job(
                        upload.data, upload.filename, upload.content_type, level.config
                    )
                )
            except ProviderConfigRejected as e:
                logger.warning(
                    "provider_config_rejected",
                    level=level.name,
                    status_code=e.status_code,
                    error=str(e),
                )
                rejection = e
                continue

            context.provider_job_id = provider_job_id
            bind_job_context(provider_job_id=provider_job_id)
            logger.info("provider_job_submitted", level=level.name)
            await self._attach(context)
            return

        raise rejection

    async def _attach(self, context: JobContext) -> None:
        job = settle(
            await self.recorder.find_job(context.user_id, context.filename),
            "job_lookup",
            filename=context.filename,
        )
        if job is None or job.is_terminal or job.provider_job_id or context.provider_job_id is None:
            return
        settle(
            await self.recorder.attach_provider_job(job, context.provider_job_id),
            "record_job",
            job_id=str(job.id),
        )

    async def fetch_job(self, provider_job_id: str) -> ProviderJob:
        return await self.provider_retry.run(
            lambda _attempt: self.speech_to_text.get_job(provider_job_id)
        )

    async def _rendering(self, provider_job_id: str, fmt: str) -> str | None:
        try:
            result = await self.provider_retry.run(
                lambda _attempt: self.speech_to_text.get_transcript(provider_job_id, fmt)
            )
        except ProviderError as e:
            logger.warning("transcript_rendering_unavailable", format=fmt, error=str(e))
            return None
        return result if isinstance(result, str) else None

    async def _wait_for_completion(self, context: JobContext, deadline: float) -> TranscriptionResult:
        while True:
            observation = await self.fetch_job(context.provider_job_id)
            response = await self.advance(context, observation)

            if response.status == JobStatus.COMPLETED.value:
                return response
            if response.status == JobStatus.FAILED.value:
                raise TranscriptionFailedError(
                    response.error or GENERIC_FAILURE,
                    details={"errors": response.details, "warnings": context.warnings},
                )

            if self._monotonic() + self._poll_interval > deadline:
                raise ProviderTimeout(
                    f"Transcription did not finish within {self._wait_budget:.0f} seconds"
                )
            await self._sleep(self._poll_interval)

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    async def advance(self, context: JobContext, observation: ProviderJob) -> JobStatusResponse:
        """Apply one provider observation to the job.

        ``accepted``/``running`` leave the job processing, ``rejected``/
        ``expired`` fail it, ``done`` completes it. Any other provider status
        is reported as ``unknown`` without touching stored state.
        """
        status = observation.status

        if status in PROCESSING_PROGRESS:
            return JobStatusResponse(
                status="processing",
                job_id=observation.id,
                filename=context.filename,
                job_status=status,
                progress=PROCESSING_PROGRESS[status],
            )

        if status in FAILED_PROVIDER_STATUSES:
            reasons = ", ".join(observation.errors) or "Unknown error"
            await self._fail(context, f"Job {status}: {reasons}")
            return JobStatusResponse(
                status="failed",
                job_id=observation.id,
                filename=context.filename,
                job_status=status,
                error=f"Transcription {status}",
                details=observation.errors,
            )

        if status == "done":
            return await self._complete(context, observation)

        logger.info("provider_status_unknown", job_id=observation.id, job_status=status)
        return JobStatusResponse(
            status="unknown",
            job_id=observation.id,
            filename=context.filename,
            job_status=status,
        )

    async def _complete(self, context: JobContext, observation: ProviderJob) -> JobStatusResponse:
        stored = settle(
            await self.recorder.find_job(context.user_id, context.filename, observation.id),
            "job_lookup",
            filename=context.filename,
        )
        owned = stored is not None and stored.provider_job_id == observation.id
        if owned and stored.status == JobStatus.COMPLETED.value:
            return self._completed_response(
                observation.id, stored.filename, JobMetadata.from_column(stored.metadata)
            )

        # Another upload's finished row never lends its context
        reusable = stored is not None and (owned or not stored.is_terminal)
        if context.meeting_context is None and reusable:
            context.meeting_context = JobMetadata.from_column(stored.metadata).meeting_context

        transcript = await self.provider_retry.run(
            lambda _attempt: self.speech_to_text.get_transcript(observation.id, "json-v2")
        )
        if not isinstance(transcript, dict):
            await self._fail(context, "Unexpected transcript format from provider.")
            raise ProviderResponseError("Unexpected transcript format from provider.")

        transcript_text, transcript_srt = await asyncio.gather(
            self._rendering(observation.id, "txt"),
            self._rendering(observation.id, "srt"),
        )

        segments = build_segments(parse_events(transcript))
        if not segments:
            logger.info("transcript_empty", job_id=observation.id)
        if not transcript_text:
            transcript_text = render_transcript_text(segments)
        if not transcript_srt:
            transcript_srt = render_srt(segments)

        job_data = transcript.get("job") or observation.raw
        duration = observation.duration or (job_data or {}).get("duration")

        minutes = await self.minutes.generate(
            segments, context.meeting_context, duration_seconds=duration
        )
        warnings = [*context.warnings, *minutes.warnings]

        limit_warning = await self.quota.post_check(
            context.user_id,
            context.tier,
            duration_seconds=duration,
            usage_cost=context.usage_cost,
        )

        artifacts = JobMetadata(
            transcript_text=transcript_text,
            transcript_srt=transcript_srt,
            minutes=minutes.text,
            segments=segments,
            provider_job=job_data,
            transcript_json=transcript,
            summary=transcript.get("summary"),
            sentiment=transcript.get("sentiment_analysis"),
            topics=transcript.get("topics"),
            translations=transcript.get("translations"),
            warnings=warnings,
            limit_exceeded=limit_warning,
            meeting_context=context.meeting_context,
            processed_at=self.recorder.now(),
        )
        settle(
            await self.recorder.update_job_status(
                context.user_id,
                context.filename,
                JobStatus.COMPLETED,
                provider_job_id=observation.id,
                duration_seconds=duration,
                metadata=artifacts,
            ),
            "terminal_write",
            filename=context.filename,
        )

        logger.info(
            "transcription_completed",
            job_id=observation.id,
            segments=len(segments),
            duration_seconds=duration,
            minutes_model=minutes.model,
            warnings=len(warnings),
        )

        return self._completed_response(observation.id, context.filename, artifacts)

    @staticmethod
    def _completed_response(
        job_id: str, filename: str, artifacts: JobMetadata
    ) -> JobStatusResponse:
        return JobStatusResponse(
            status="completed",
            job_id=job_id,
            filename=filename,
            segments=artifacts.segments or [],
            minutes=artifacts.minutes,
            transcript_text=artifacts.transcript_text,
            transcript_srt=artifacts.transcript_srt,
            transcript_json=artifacts.transcript_json,
            job=artifacts.provider_job,
            summary=artifacts.summary,
            sentiment=artifacts.sentiment,
            topics=artifacts.topics,
            translations=artifacts.translations,
            warnings=artifacts.warnings or [],
            limit_exceeded=artifacts.limit_exceeded,
        )

    async def _fail(self, context: JobContext, message: str) -> None:
        logger.warning("transcription_failed", filename=context.filename, error=message)
        settle(
            await self.recorder.update_job_status(
                context.user_id,
                context.filename,
                JobStatus.FAILED,
                provider_job_id=context.provider_job_id,
                error_message=message,
            ),
            "terminal_write",
            filename=context.filename,
        )
