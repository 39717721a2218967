"""AI providers module."""

from meeting_minutes.core.ai.base import ProviderJob, SpeechToTextProvider, TextGenerationProvider
from meeting_minutes.core.ai.openai import OpenAIProvider
from meeting_minutes.core.ai.speechmatics import SpeechmaticsProvider

__all__ = [
    "ProviderJob",
    "SpeechToTextProvider",
    "TextGenerationProvider",
    "OpenAIProvider",
    "SpeechmaticsProvider",
]
