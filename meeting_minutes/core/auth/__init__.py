"""Authentication module."""

from meeting_minutes.core.auth.jwt import Identity, create_access_token, verify_token
from meeting_minutes.core.auth.dependencies import (
    CronAuthorized,
    CurrentIdentity,
    get_current_identity,
    require_cron_secret,
)

__all__ = [
    "Identity",
    "create_access_token",
    "verify_token",
    "CronAuthorized",
    "CurrentIdentity",
    "get_current_identity",
    "require_cron_secret",
]
