"""Tests for speech-to-text job configuration and degradation levels."""

import math

import pytest

from meeting_minutes.transcription.provider_config import (
    MINIMAL_CONFIG_WARNING,
    SIMPLER_CONFIG_WARNING,
    clamp_sensitivity,
    degradation_levels,
    full_config,
    transcription_config,
)
from meeting_minutes.transcription.schemas import TranscriptionOptions


@pytest.mark.unit
class TestTranscriptionConfig:
    def test_speaker_diarization_with_sensitivity(self):
        options = TranscriptionOptions(language="de", speaker_sensitivity=0.7)

        assert transcription_config(options) == {
            "language": "de",
            "diarization": "speaker",
            "speaker_diarization_config": {"speaker_sensitivity": 0.7},
        }

    def test_no_diarization(self):
        options = TranscriptionOptions(diarization_mode="none", speaker_sensitivity=0.7)

        assert transcription_config(options) == {"language": "en"}

    def test_channel_diarization_ignores_sensitivity(self):
        options = TranscriptionOptions(diarization_mode="channel", speaker_sensitivity=0.7)

        assert transcription_config(options) == {"language": "en", "diarization": "channel"}

    @pytest.mark.parametrize(
        "value,expected",
        [(None, None), (-1.0, 0.0), (0.4, 0.4), (3.0, 1.0), (math.nan, None), (math.inf, None)],
    )
    def test_clamp_sensitivity(self, value, expected):
        assert clamp_sensitivity(value) == expected


@pytest.mark.unit
class TestFullConfig:
    def test_defaults_have_no_extras(self):
        assert full_config(TranscriptionOptions()) == {
            "transcription_config": {"language": "en", "diarization": "speaker"}
        }

    def test_every_option(self):
        options = TranscriptionOptions(
            enable_summarization=True,
            summary_type="bullets",
            summary_length="detailed",
            summary_content_type="informative",
            enable_sentiment=True,
            enable_topics=True,
            topics=["budget", "hiring"],
            translation_languages=["de", "fr"],
        )

        config = full_config(options)

        assert config["summarization_config"] == {
            "summary_type": "bullets",
            "summary_length": "detailed",
            "content_type": "informative",
        }
        assert config["sentiment_analysis_config"] == {}
        assert config["topic_detection_config"] == {"topics": ["budget", "hiring"]}
        assert config["translation_config"] == {"target_languages": ["de", "fr"]}

    def test_unknown_summary_values_are_dropped(self):
        options = TranscriptionOptions(
            enable_summarization=True,
            summary_type="haiku",
            summary_length="brief",
            summary_content_type="gossip",
        )

        assert full_config(options)["summarization_config"] == {"summary_length": "brief"}

    def test_topics_without_list(self):
        options = TranscriptionOptions(enable_topics=True)

        assert full_config(options)["topic_detection_config"] == {}


@pytest.mark.unit
class TestDegradationLevels:
    def test_three_levels_each_simpler(self):
        options = TranscriptionOptions(
            language="es",
            speaker_sensitivity=0.5,
            enable_summarization=True,
            enable_sentiment=True,
        )

        full, diarization, minimal = degradation_levels(options)

        assert full.name == "full"
        assert full.warning is None
        assert "summarization_config" in full.config

        assert diarization.warning == SIMPLER_CONFIG_WARNING
        assert diarization.config == {
            "transcription_config": {
                "language": "es",
                "diarization": "speaker",
                "speaker_diarization_config": {"speaker_sensitivity": 0.5},
            }
        }

        assert minimal.warning == MINIMAL_CONFIG_WARNING
        assert minimal.config == {"transcription_config": {"language": "es"}}
