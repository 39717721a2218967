"""Speech-to-text job configuration and its degradation sequence."""

import math
from dataclasses import dataclass
from typing import Any

from meeting_minutes.transcription.schemas import TranscriptionOptions

SUMMARY_TYPES = {"paragraphs", "bullets"}
SUMMARY_LENGTHS = {"brief", "detailed"}
SUMMARY_CONTENT_TYPES = {"auto", "informative", "conversational"}

SIMPLER_CONFIG_WARNING = "Transcription request was rejected. Trying a simpler configuration."
MINIMAL_CONFIG_WARNING = (
    "Transcription with diarization was rejected. "
    "Falling back to minimal transcription (no diarization or extras)."
)


@dataclass(frozen=True)
class ConfigLevel:
    """One step of the degradation sequence."""

    name: str
    config: dict[str, Any]
    warning: str | None = None  # added when this level is reached by degrading


def _pick(value: str | None, allowed: set[str]) -> str | None:
    return value if value in allowed else None


def clamp_sensitivity(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return min(max(value, 0.0), 1.0)


def transcription_config(options: TranscriptionOptions) -> dict[str, Any]:
    """Language plus diarization settings."""
    config: dict[str, Any] = {"language": options.language}
    if options.diarization_mode != "none":
        config["diarization"] = options.diarization_mode
        sensitivity = clamp_sensitivity(options.speaker_sensitivity)
        if options.diarization_mode == "speaker" and sensitivity is not None:
            config["speaker_diarization_config"] = {"speaker_sensitivity": sensitivity}
    return config


def full_config(options: TranscriptionOptions) -> dict[str, Any]:
    """Job config with every requested analysis option."""
    config: dict[str, Any] = {"transcription_config": transcription_config(options)}

    if options.enable_summarization:
        summary = {
            "summary_type": _pick(options.summary_type, SUMMARY_TYPES),
            "summary_length": _pick(options.summary_length, SUMMARY_LENGTHS),
            "content_type": _pick(options.summary_content_type, SUMMARY_CONTENT_TYPES),
        }
        config["summarization_config"] = {k: v for k, v in summary.items() if v is not None}

    if options.enable_sentiment:
        config["sentiment_analysis_config"] = {}

    if options.enable_topics:
        config["topic_detection_config"] = {"topics": options.topics} if options.topics else {}

    if options.translation_languages:
        config["translation_config"] = {"target_languages": options.translation_languages}

    return config


def degradation_levels(options: TranscriptionOptions) -> list[ConfigLevel]:
    """Configurations to try in order, each strictly simpler than the last."""
    return [
        ConfigLevel("full", full_config(options)),
        ConfigLevel(
            "diarization",
            {"transcription_config": transcription_config(options)},
            SIMPLER_CONFIG_WARNING,
        ),
        ConfigLevel(
            "minimal",
            {"transcription_config": {"language": options.language}},
            MINIMAL_CONFIG_WARNING,
        ),
    ]
