"""FastAPI dependencies for authentication."""

import secrets
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from meeting_minutes.config import settings
from meeting_minutes.core.auth.jwt import Identity, verify_token
from meeting_minutes.core.errors import AuthenticationError

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> Identity:
    """
    Get the caller's identity from the bearer JWT.
    Raises 401 if not authenticated.
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    identity = verify_token(credentials.credentials)
    if identity is None:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

    return identity


async def require_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> None:
    """Guard scheduled endpoints with ``CRON_SECRET`` when one is configured."""
    if not settings.cron_secret:
        return
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.cron_secret
    ):
        raise AuthenticationError("Invalid cron secret", code="INVALID_TOKEN")


# Type aliases for dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
CronAuthorized = Annotated[None, Depends(require_cron_secret)]
