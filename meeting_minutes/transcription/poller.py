"""Status Poller: advances an asynchronously submitted job per client call."""

from meeting_minutes.core.auth.jwt import Identity
from meeting_minutes.core.errors import ClientInputError, ProviderError, TranscriptionFailedError
from meeting_minutes.core.logging import bind_job_context, get_logger
from meeting_minutes.transcription.orchestrator import JobContext, TranscriptionOrchestrator
from meeting_minutes.transcription.schemas import JobStatusResponse

logger = get_logger(__name__)


class StatusPoller:
    """Queries the provider once and applies the result to the stored job.

    Shares the orchestrator's ``advance`` step, so a ``done`` job goes through
    exactly the same completion sequence as the synchronous path. Repeated
    calls for a completed job return the stored artifacts.
    """

    def __init__(self, orchestrator: TranscriptionOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def check_status(
        self,
        identity: Identity,
        job_id: str | None,
        filename: str | None,
    ) -> JobStatusResponse:
        if not job_id or not filename:
            raise ClientInputError(
                "Missing jobId or filename parameter", code="INVALID_REQUEST"
            )

        self._orchestrator.ensure_configured()
        bind_job_context(user_id=identity.user_id, filename=filename, provider_job_id=job_id)

        context = JobContext(
            user_id=identity.user_id,
            tier=identity.tier,
            filename=filename,
            provider_job_id=job_id,
        )

        # Provider errors leave the stored job untouched so the client can poll again
        try:
            observation = await self._orchestrator.fetch_job(job_id)
            logger.debug("provider_job_observed", job_id=job_id, job_status=observation.status)
            return await self._orchestrator.advance(context, observation)
        except ProviderError as e:
            logger.warning("status_check_failed", job_id=job_id, error=str(e))
            raise TranscriptionFailedError(
                "Failed to check transcription status", details={"reason": str(e)}
            ) from e
