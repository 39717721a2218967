"""OpenAI text generation provider."""

from typing import Any

import openai
from openai import AsyncOpenAI

from meeting_minutes.config import settings
from meeting_minutes.core.ai.base import TextGenerationProvider
from meeting_minutes.core.errors import GenerationError, GenerationTransient


class OpenAIProvider(TextGenerationProvider):
    """
    OpenAI chat completions provider used to write meeting minutes.

    SDK exceptions are translated into the generation error taxonomy:
    connection problems, timeouts, rate limits and 5xx responses become
    ``GenerationTransient``; every other API error is ``GenerationError``.
    """

    COMPLETION_MODEL = "gpt-4o-mini"

    def __init__(self, api_key: str | None = None, client: AsyncOpenAI | None = None):
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._client = client or AsyncOpenAI(api_key=self._api_key or "missing-key")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1000,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """
        Text completion.

        Args:
            prompt: User prompt
            system: Optional system message
            model: Model name, defaults to COMPLETION_MODEL
            max_tokens: Maximum response tokens
            temperature: Optional sampling temperature

        Returns:
            Generated text, possibly empty
        """
        messages = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": prompt})

        params: dict[str, Any] = {
            "model": model or self.COMPLETION_MODEL,
            "messages": messages,
            "max_tokens": max_tokens,
            **kwargs,
        }
        if temperature is not None:
            params["temperature"] = temperature

        try:
            response = await self._client.chat.completions.create(**params)
        except (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as e:
            # APITimeoutError is a subclass of APIConnectionError
            raise GenerationTransient(str(e)) from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                raise GenerationTransient(str(e)) from e
            raise GenerationError(str(e)) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

