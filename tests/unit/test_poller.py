"""Tests for the Status Poller."""

import pytest

from meeting_minutes.core.errors import (
    ClientInputError,
    ProviderTransient,
    ServiceUnavailableError,
    TranscriptionFailedError,
)


@pytest.fixture
def poller(services):
    return services.poller


@pytest.fixture
def processing_job(repository, identity):
    return repository.add_job(
        identity.user_id,
        filename="meeting.wav",
        status="processing",
        duration_seconds=None,
        provider_job_id="job-123",
        metadata={"meetingContext": "Design review"},
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestCheckStatus:
    @pytest.mark.parametrize("job_id,filename", [(None, "a.wav"), ("job-123", None), ("", "")])
    async def test_missing_parameters(self, poller, identity, job_id, filename):
        with pytest.raises(ClientInputError) as exc_info:
            await poller.check_status(identity, job_id, filename)

        assert exc_info.value.code == "INVALID_REQUEST"
        assert exc_info.value.status_code == 400

    async def test_still_running(self, poller, identity, processing_job, speech_to_text):
        speech_to_text.statuses = ["running"]

        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.status == "processing"
        assert response.progress == 50
        assert processing_job.status == "processing"

    async def test_done_completes_job(self, poller, identity, processing_job, text_generation):
        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.status == "completed"
        assert response.minutes == "## Minutes\n- Kickoff"
        assert [s.speaker_label for s in response.segments] == ["Speaker 1", "Speaker 2"]
        assert processing_job.status == "completed"
        assert processing_job.duration_seconds == 120.0
        assert processing_job.metadata["meetingContext"] == "Design review"
        # Stored meeting context reaches the minutes prompt
        assert "Design review" in text_generation.prompts[0]

    async def test_repeated_completion_returns_stored_artifacts(
        self, poller, identity, processing_job, repository, text_generation, speech_to_text
    ):
        for i in range(9):
            repository.add_job(identity.user_id, filename=f"earlier-{i}.wav")

        first = await poller.check_status(identity, "job-123", "meeting.wav")
        requests_after_first = len(speech_to_text.transcript_requests)

        second = await poller.check_status(identity, "job-123", "meeting.wav")

        assert second.status == "completed"
        assert second.model_dump(by_alias=True) == first.model_dump(by_alias=True)
        assert second.summary == {"content": "A short greeting."}
        assert second.transcript_json["results"]
        assert second.limit_exceeded.type == "transcription_limit_reached"
        assert len(text_generation.models) == 1
        assert len(speech_to_text.transcript_requests) == requests_after_first

    async def test_unrecorded_job_never_returns_earlier_upload(
        self, poller, identity, repository, text_generation
    ):
        earlier = repository.add_job(
            identity.user_id,
            filename="meeting.wav",
            provider_job_id="job-old",
            metadata={"minutes": "Last week's minutes"},
        )

        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.status == "completed"
        assert response.minutes == "## Minutes\n- Kickoff"
        assert len(text_generation.models) == 1
        assert earlier.metadata == {"minutes": "Last week's minutes"}

    async def test_unbound_earlier_upload_is_not_reused(
        self, poller, identity, repository, text_generation
    ):
        repository.add_job(
            identity.user_id,
            filename="meeting.wav",
            metadata={"minutes": "Last week's minutes", "meetingContext": "Old agenda"},
        )

        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.minutes == "## Minutes\n- Kickoff"
        assert "Old agenda" not in text_generation.prompts[0]

    async def test_rejected_fails_job(self, poller, identity, processing_job, speech_to_text):
        speech_to_text.statuses = ["rejected"]
        speech_to_text.errors = ["Unsupported codec"]

        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.status == "failed"
        assert response.error == "Transcription rejected"
        assert response.details == ["Unsupported codec"]
        assert processing_job.status == "failed"

    async def test_failed_job_is_not_reopened(self, poller, identity, processing_job, speech_to_text):
        speech_to_text.statuses = ["rejected"]
        await poller.check_status(identity, "job-123", "meeting.wav")

        speech_to_text.statuses = ["done"]
        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.status == "completed"
        assert processing_job.status == "failed"

    async def test_unknown_status(self, poller, identity, processing_job, speech_to_text):
        speech_to_text.statuses = ["archived"]

        response = await poller.check_status(identity, "job-123", "meeting.wav")

        assert response.status == "unknown"
        assert response.job_status == "archived"

    async def test_provider_error_leaves_job_processing(
        self, poller, identity, processing_job, speech_to_text
    ):
        async def unavailable(job_id):
            raise ProviderTransient("provider down", status_code=503)

        speech_to_text.get_job = unavailable

        with pytest.raises(TranscriptionFailedError, match="Failed to check transcription status"):
            await poller.check_status(identity, "job-123", "meeting.wav")
        assert processing_job.status == "processing"

    async def test_missing_credentials(self, poller, identity, speech_to_text):
        speech_to_text.configured = False

        with pytest.raises(ServiceUnavailableError):
            await poller.check_status(identity, "job-123", "meeting.wav")
