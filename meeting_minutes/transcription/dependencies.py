"""Service graph construction and FastAPI dependencies.

Services are built once in the application lifespan and stored on
``app.state.services``; route handlers receive them through ``Depends`` so
tests can swap the whole graph with ``app.dependency_overrides``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Annotated, Any

from fastapi import Depends, Request
from tenacity import wait_exponential

from meeting_minutes.config import Settings
from meeting_minutes.core.ai import OpenAIProvider, SpeechmaticsProvider
from meeting_minutes.core.ai.base import SpeechToTextProvider, TextGenerationProvider
from meeting_minutes.core.errors import ProviderTransient
from meeting_minutes.core.retry import RetryPolicy
from meeting_minutes.transcription.minutes import MinutesGenerator
from meeting_minutes.transcription.orchestrator import TranscriptionOrchestrator
from meeting_minutes.transcription.poller import StatusPoller
from meeting_minutes.transcription.quota import QuotaGuard
from meeting_minutes.transcription.repository import TranscriptionRepository
from meeting_minutes.transcription.usage import UsageRecorder


@dataclass
class TranscriptionServices:
    recorder: UsageRecorder
    quota: QuotaGuard
    minutes: MinutesGenerator
    orchestrator: TranscriptionOrchestrator
    poller: StatusPoller


def is_provider_transient(exc: BaseException) -> bool:
    return isinstance(exc, ProviderTransient)


def build_services(
    settings: Settings,
    repository: TranscriptionRepository,
    *,
    speech_to_text: SpeechToTextProvider | None = None,
    text_generation: TextGenerationProvider | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> TranscriptionServices:
    """Wire the transcription pipeline from settings.

    Providers default to Speechmatics and OpenAI configured from ``settings``.
    """
    speech_to_text = speech_to_text or SpeechmaticsProvider(
        api_key=settings.speechmatics_api_key,
        base_url=settings.speechmatics_base_url,
        timeout=settings.speechmatics_request_timeout_seconds,
    )
    text_generation = text_generation or OpenAIProvider(api_key=settings.openai_api_key)

    recorder = UsageRecorder(
        repository,
        stale_after=timedelta(minutes=settings.stale_job_after_minutes),
        retention_months=settings.job_retention_months,
    )
    quota = QuotaGuard(recorder, upgrade_url=settings.upgrade_url)
    minutes = MinutesGenerator(
        text_generation,
        primary_model=settings.minutes_primary_model,
        backup_model=settings.minutes_backup_model,
        max_tokens=settings.minutes_max_tokens,
        retry_wait=settings.minutes_retry_wait_seconds,
        final_backoff=settings.minutes_final_backoff_seconds,
        sleep=sleep,
    )
    provider_retry = RetryPolicy(
        max_attempts=settings.provider_retry_attempts,
        wait=wait_exponential(
            multiplier=1,
            min=settings.provider_retry_min_wait_seconds,
            max=settings.provider_retry_max_wait_seconds,
        ),
        retry_on=is_provider_transient,
        sleep=sleep,
        name="speech_to_text",
    )
    orchestrator = TranscriptionOrchestrator(
        speech_to_text,
        minutes,
        quota,
        recorder,
        provider_retry=provider_retry,
        max_upload_bytes=settings.max_upload_bytes,
        allowed_content_types=settings.allowed_content_types,
        poll_interval=settings.speechmatics_poll_interval_seconds,
        wait_budget=settings.transcription_wait_budget_seconds,
        sleep=sleep,
    )
    return TranscriptionServices(
        recorder=recorder,
        quota=quota,
        minutes=minutes,
        orchestrator=orchestrator,
        poller=StatusPoller(orchestrator),
    )


def get_services(request: Request) -> TranscriptionServices:
    return request.app.state.services


Services = Annotated[TranscriptionServices, Depends(get_services)]
