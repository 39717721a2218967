"""Speechmatics batch transcription provider.

Thin async client over the Speechmatics v2 batch REST API using httpx.
HTTP failures are classified into the provider error taxonomy so callers
can decide between degrading the configuration, retrying, or failing:

- 400/422 on job submission -> ProviderConfigRejected
- timeouts, transport errors, 429 and 5xx -> ProviderTransient
- anything else -> ProviderError
"""

import json
from typing import Any

import httpx

from meeting_minutes.config import settings
from meeting_minutes.core.ai.base import ProviderJob, SpeechToTextProvider
from meeting_minutes.core.errors import (
    ProviderConfigRejected,
    ProviderError,
    ProviderTransient,
)
from meeting_minutes.core.logging import get_logger

logger = get_logger(__name__)

CONFIG_REJECTION_STATUSES = {400, 422}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict):
        parts = [str(body.get(k)) for k in ("error", "detail") if body.get(k)]
        if parts:
            return ": ".join(parts)
    return str(body)[:500]


class SpeechmaticsProvider(SpeechToTextProvider):
    """
    Speechmatics batch API client.

    Args:
        api_key: Speechmatics API key.
        base_url: API root, e.g. https://asr.api.speechmatics.com/v2
        timeout: Per-request timeout in seconds (uploads can be large).
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.speechmatics_api_key
        self._base_url = (base_url or settings.speechmatics_base_url).rstrip("/")
        self._timeout = timeout or settings.speechmatics_request_timeout_seconds
        self._transport = transport

    @property
    def name(self) -> str:
        return "speechmatics"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        submitting: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTransient(f"Speechmatics request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderTransient(f"Speechmatics connection failed: {e}") from e

        if response.is_success:
            return response

        message = _error_message(response)
        status = response.status_code
        logger.warning(
            "speechmatics_error_response",
            method=method,
            path=path,
            status_code=status,
            message=message,
        )
        if submitting and status in CONFIG_REJECTION_STATUSES:
            raise ProviderConfigRejected(message, status_code=status, body=response.text)
        if status == 429 or status >= 500:
            raise ProviderTransient(message, status_code=status, body=response.text)
        raise ProviderError(message, status_code=status, body=response.text)

    async def submit_job(
        self,
        audio_data: bytes,
        filename: str,
        content_type: str,
        config: dict[str, Any],
    ) -> str:
        """Upload audio with a job config; return the job id."""
        job_config = {"type": "transcription", **config}
        response = await self._request(
            "POST",
            "/jobs",
            submitting=True,
            files={"data_file": (filename, audio_data, content_type)},
            data={"config": json.dumps(job_config)},
        )
        try:
            job_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Unexpected job submission response: {response.text[:200]}") from e

        logger.info("speechmatics_job_submitted", job_id=job_id, filename=filename)
        return job_id

    async def get_job(self, job_id: str) -> ProviderJob:
        response = await self._request("GET", f"/jobs/{job_id}")
        try:
            job = response.json()["job"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Unexpected job status response: {response.text[:200]}") from e

        errors = []
        for entry in job.get("errors") or []:
            if isinstance(entry, dict):
                errors.append(str(entry.get("message") or entry))
            else:
                errors.append(str(entry))

        return ProviderJob(
            id=job.get("id", job_id),
            status=job.get("status", "unknown"),
            duration=job.get("duration"),
            errors=errors,
            raw=job,
        )

    async def get_transcript(self, job_id: str, fmt: str = "json-v2") -> dict | str:
        response = await self._request(
            "GET",
            f"/jobs/{job_id}/transcript",
            params={"format": fmt},
        )
        if fmt == "json-v2":
            try:
                return response.json()
            except ValueError:
                # Caller treats a string as an unparseable result
                return response.text
        return response.text
