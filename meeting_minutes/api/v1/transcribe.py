"""Transcription API endpoints."""

from typing import Annotated

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from fastapi.responses import JSONResponse

from meeting_minutes.config import settings
from meeting_minutes.core.auth.dependencies import CurrentIdentity
from meeting_minutes.core.errors import ClientInputError
from meeting_minutes.transcription.dependencies import Services
from meeting_minutes.transcription.schemas import (
    JobStatusResponse,
    TranscriptionOptions,
    TranscriptionResult,
    UploadedAudio,
)

router = APIRouter()

DIARIZATION_MODES = {"none", "speaker", "channel"}


def split_list(*values: str | None) -> list[str]:
    """Comma lists and repeated fields flattened into one list."""
    items = []
    for value in values:
        items.extend(part.strip() for part in (value or "").split(","))
    return [item for item in items if item]


def parse_flag(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


def parse_sensitivity(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        return None


async def read_upload(audio: UploadFile | None) -> UploadedAudio | None:
    """Read at most one byte past the upload ceiling."""
    if audio is None:
        return None
    data = await audio.read(settings.max_upload_bytes + 1)
    return UploadedAudio(
        filename=audio.filename or "",
        content_type=audio.content_type or "",
        data=data,
    )


@router.post(
    "",
    response_model=TranscriptionResult,
    responses={status.HTTP_202_ACCEPTED: {"description": "Submitted with mode=async"}},
)
async def transcribe(
    identity: CurrentIdentity,
    services: Services,
    audio: Annotated[UploadFile | None, File()] = None,
    language: Annotated[str, Form()] = "en",
    diarization_mode: Annotated[str, Form(alias="diarizationMode")] = "speaker",
    speaker_sensitivity: Annotated[str | None, Form(alias="speakerSensitivity")] = None,
    meeting_context: Annotated[str, Form(alias="meetingContext")] = "",
    enable_summarization: Annotated[str | None, Form(alias="enableSummarization")] = None,
    summary_type: Annotated[str | None, Form(alias="summaryType")] = None,
    summary_length: Annotated[str | None, Form(alias="summaryLength")] = None,
    summary_content_type: Annotated[str | None, Form(alias="summaryContentType")] = None,
    enable_sentiment: Annotated[str | None, Form(alias="enableSentiment")] = None,
    enable_topics: Annotated[str | None, Form(alias="enableTopics")] = None,
    topics: Annotated[str | None, Form()] = None,
    translation_languages: Annotated[list[str] | None, Form(alias="translationLanguages")] = None,
    mode: Annotated[str, Form()] = "sync",
):
    """
    Transcribe an uploaded recording and write meeting minutes.

    - Multipart field ``audio`` carries the recording
    - ``mode=async`` only submits the job and returns 202; poll
      ``/transcribe/status`` for the result
    """
    if diarization_mode not in DIARIZATION_MODES:
        raise ClientInputError(
            f"diarizationMode must be one of {', '.join(sorted(DIARIZATION_MODES))}",
            code="INVALID_REQUEST",
        )

    options = TranscriptionOptions(
        language=language.strip() or "en",
        diarization_mode=diarization_mode,
        speaker_sensitivity=parse_sensitivity(speaker_sensitivity),
        meeting_context=meeting_context.strip(),
        enable_summarization=parse_flag(enable_summarization),
        summary_type=summary_type,
        summary_length=summary_length,
        summary_content_type=summary_content_type,
        enable_sentiment=parse_flag(enable_sentiment),
        enable_topics=parse_flag(enable_topics),
        topics=split_list(topics),
        translation_languages=split_list(*(translation_languages or [])),
    )
    upload = await read_upload(audio)

    if mode == "async":
        submission = await services.orchestrator.submit(identity, upload, options)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=submission.model_dump(mode="json", by_alias=True),
        )

    return await services.orchestrator.transcribe(identity, upload, options)


@router.get(
    "/status",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
)
async def transcription_status(
    identity: CurrentIdentity,
    services: Services,
    job_id: Annotated[str | None, Query(alias="jobId")] = None,
    filename: Annotated[str | None, Query()] = None,
) -> JobStatusResponse:
    """
    Check an asynchronously submitted job.

    Returns processing, completed (with the full artifacts), failed or unknown.
    """
    return await services.poller.check_status(identity, job_id, filename)
