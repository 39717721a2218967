"""Tests for the minutes generation chain and its fallback summary."""

import pytest

from meeting_minutes.core.errors import GenerationError, GenerationTransient
from meeting_minutes.transcription.minutes import (
    FALLBACK_WARNING,
    MinutesGenerator,
    build_prompt,
    fallback_summary,
)
from meeting_minutes.transcription.schemas import SpeakerSegment
from tests.conftest import ScriptedGenerationProvider, SleepRecorder


@pytest.fixture
def segments() -> list[SpeakerSegment]:
    return [
        SpeakerSegment(speaker_id="S1", speaker_label="Speaker 1", start=0, end=30, text="Let us ship it."),
        SpeakerSegment(speaker_id="S2", speaker_label="Speaker 2", start=30, end=90, text="Agreed, on Friday."),
    ]


def make_generator(provider, sleep=None) -> MinutesGenerator:
    return MinutesGenerator(
        provider,
        primary_model="primary",
        backup_model="backup",
        retry_wait=1.0,
        final_backoff=2.0,
        sleep=sleep or SleepRecorder(),
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestMinutesGenerator:
    async def test_first_attempt_succeeds(self, segments):
        provider = ScriptedGenerationProvider(["  ## Minutes\n- Ship Friday  "])

        result = await make_generator(provider).generate(segments)

        assert result.text == "## Minutes\n- Ship Friday"
        assert result.model == "primary"
        assert result.warnings == []
        assert provider.models == ["primary"]

    async def test_every_attempt_raising_falls_back(self, segments):
        """Four transient failures end in the templated summary and a warning."""
        provider = ScriptedGenerationProvider([GenerationTransient("timeout")] * 4)
        sleep = SleepRecorder()

        result = await make_generator(provider, sleep).generate(segments)

        assert result.text
        assert "automated fallback summary" in result.text
        assert result.warnings == [FALLBACK_WARNING]
        assert result.model is None
        assert provider.models == ["primary", "primary", "backup", "backup"]
        assert sleep.delays == [1.0, 1.0, 2.0]

    async def test_empty_responses_move_to_backup_model(self, segments):
        provider = ScriptedGenerationProvider(["", "   ", "Backup minutes"])

        result = await make_generator(provider).generate(segments)

        assert result.text == "Backup minutes"
        assert result.model == "backup"
        assert provider.models == ["primary", "primary", "backup"]

    async def test_non_retryable_error_falls_back_immediately(self, segments):
        provider = ScriptedGenerationProvider([GenerationError("invalid request")])

        result = await make_generator(provider).generate(segments)

        assert "automated fallback summary" in result.text
        assert provider.models == ["primary"]

    async def test_unexpected_exception_falls_back(self, segments):
        provider = ScriptedGenerationProvider([RuntimeError("boom")])

        result = await make_generator(provider).generate(segments)

        assert result.warnings == [FALLBACK_WARNING]

    async def test_context_is_included_in_prompt(self, segments):
        provider = ScriptedGenerationProvider(["ok"])

        await make_generator(provider).generate(segments, "Quarterly planning")

        assert "Meeting context provided by the organizer:\nQuarterly planning" in provider.prompts[0]
        assert "[00:00:30] Speaker 2: Agreed, on Friday." in provider.prompts[0]

    async def test_is_configured_follows_provider(self):
        assert make_generator(ScriptedGenerationProvider()).is_configured is True


@pytest.mark.unit
class TestFallbackSummary:
    def test_statistics(self, segments):
        text = fallback_summary(segments)

        assert text.startswith("**Meeting Summary**")
        assert "**Duration:** 2 minutes" in text
        assert "**Participants:** 2 speakers" in text
        assert "**Word Count:** ~7 words" in text
        assert "2 conversation segments" in text

    def test_explicit_duration(self, segments):
        assert "**Duration:** 10 minutes" in fallback_summary(segments, duration_seconds=600)

    def test_empty_segments(self):
        text = fallback_summary([])

        assert "**Duration:** 0 minutes" in text
        assert "**Participants:** 0 speakers" in text


@pytest.mark.unit
class TestBuildPrompt:
    def test_without_context(self, segments):
        prompt = build_prompt(segments)

        assert "Meeting context" not in prompt
        assert "[00:00:00] Speaker 1: Let us ship it." in prompt

    def test_blank_context_is_ignored(self, segments):
        assert "Meeting context" not in build_prompt(segments, "   ")

    def test_empty_transcript(self):
        assert "No transcript content was returned." in build_prompt([])
