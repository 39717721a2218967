"""Minutes Generator: meeting minutes from speaker segments.

Generation runs through a retry chain (primary model twice, then the backup
model, then one last backoff attempt). When the chain is exhausted or hits a
non-retryable error, a deterministic summary built from segment statistics
is returned instead, so callers always get usable text.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from meeting_minutes.core.ai.base import TextGenerationProvider
from meeting_minutes.core.errors import GenerationEmpty, GenerationError, GenerationTransient
from meeting_minutes.core.logging import get_logger
from meeting_minutes.core.retry import RetryPolicy, wait_schedule
from meeting_minutes.transcription.schemas import SpeakerSegment
from meeting_minutes.transcription.segments import render_prompt_transcript

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an executive assistant who writes concise, action-oriented meeting "
    "minutes. Include decisions, open questions, and next steps when present."
)

USER_PROMPT = (
    "Create detailed meeting minutes based on the following diarized transcript. "
    "Preserve speaker attribution when relevant.\n\n{context}{transcript}"
)

FALLBACK_WARNING = "Minutes generation failed; basic summary provided instead."


@dataclass
class MinutesResult:
    text: str
    warnings: list[str] = field(default_factory=list)
    model: str | None = None  # None when the fallback summary was used


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, (GenerationEmpty, GenerationTransient))


def build_prompt(segments: list[SpeakerSegment], context_text: str | None = None) -> str:
    context = context_text.strip() if context_text else ""
    prefix = f"Meeting context provided by the organizer:\n{context}\n\n" if context else ""
    return USER_PROMPT.format(context=prefix, transcript=render_prompt_transcript(segments))


def fallback_summary(segments: list[SpeakerSegment], duration_seconds: float | None = None) -> str:
    """Templated summary from segment statistics."""
    if duration_seconds is None:
        duration_seconds = segments[-1].end if segments else 0.0
    participants = len({s.speaker_label for s in segments})
    words = sum(len(s.text.split()) for s in segments)
    minutes = round(duration_seconds / 60)

    return (
        "**Meeting Summary**\n\n"
        f"**Duration:** {minutes} minutes\n"
        f"**Participants:** {participants} speakers\n"
        f"**Word Count:** ~{words} words\n\n"
        "**Note:** This is an automated fallback summary. The AI-generated meeting "
        "minutes could not be created due to a temporary service issue.\n\n"
        "**Key Points:**\n"
        f"- Meeting recorded with {len(segments)} conversation segments\n"
        f"- {participants} speakers participated in the discussion\n"
        "- Full transcript is available for detailed review\n\n"
        "**Recommendation:** Please review the full transcript for complete meeting details."
    )


class MinutesGenerator:
    """
    Writes meeting minutes with a text generation provider.

    Args:
        provider: Chat completion provider.
        primary_model: Model for the first two attempts.
        backup_model: Model for the remaining attempts.
        max_tokens: Output token ceiling per attempt.
        retry_wait: Delay after the first and second failed attempts.
        final_backoff: Delay before the last attempt.
        sleep: Awaitable sleep, replaced in tests.
    """

    def __init__(
        self,
        provider: TextGenerationProvider,
        *,
        primary_model: str,
        backup_model: str,
        max_tokens: int = 900,
        retry_wait: float = 1.0,
        final_backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._max_tokens = max_tokens
        self.plan = [primary_model, primary_model, backup_model, backup_model]
        self._policy = RetryPolicy(
            max_attempts=len(self.plan),
            wait=wait_schedule(retry_wait, retry_wait, final_backoff),
            retry_on=is_retryable,
            sleep=sleep,
            name="minutes_generation",
        )

    @property
    def is_configured(self) -> bool:
        return self._provider.is_configured

    async def _complete(self, prompt: str, attempt: int) -> tuple[str, str]:
        model = self.plan[attempt - 1]
        text = await self._provider.complete(
            prompt,
            system=SYSTEM_PROMPT,
            model=model,
            max_tokens=self._max_tokens,
        )
        if not text or not text.strip():
            raise GenerationEmpty(model)
        return text.strip(), model

    async def generate(
        self,
        segments: list[SpeakerSegment],
        context_text: str | None = None,
        *,
        duration_seconds: float | None = None,
    ) -> MinutesResult:
        """Minutes for ``segments``. Never raises; degrades to the fallback summary."""
        prompt = build_prompt(segments, context_text)

        try:
            text, model = await self._policy.run(lambda attempt: self._complete(prompt, attempt))
        except GenerationError as e:
            logger.warning(
                "minutes_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
                segments=len(segments),
            )
        except Exception as e:
            logger.exception("minutes_generation_crashed", error=str(e))
        else:
            logger.info("minutes_generated", model=model, characters=len(text))
            return MinutesResult(text=text, model=model)

        return MinutesResult(
            text=fallback_summary(segments, duration_seconds),
            warnings=[FALLBACK_WARNING],
        )
