"""Base AI provider interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ProviderJob:
    """Snapshot of a speech-to-text job as reported by the provider."""

    id: str
    status: str  # accepted, running, done, rejected, expired, ...
    duration: float | None = None  # seconds
    errors: list[str] = field(default_factory=list)
    raw: dict = field(default_factory=dict)


class SpeechToTextProvider(ABC):
    """Batch speech-to-text provider: submit a job, query it, fetch results."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def submit_job(
        self,
        audio_data: bytes,
        filename: str,
        content_type: str,
        config: dict[str, Any],
    ) -> str:
        """Submit a job and return the provider job id."""
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> ProviderJob:
        """Fetch the current job status."""
        ...

    @abstractmethod
    async def get_transcript(self, job_id: str, fmt: str = "json-v2") -> dict | str:
        """Fetch a finished job's result in one rendering (json-v2, txt, srt)."""
        ...


class TextGenerationProvider(ABC):
    """Chat-style text generation provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1000,
        **kwargs: Any,
    ) -> str:
        """Return the generated text (may be empty)."""
        ...
