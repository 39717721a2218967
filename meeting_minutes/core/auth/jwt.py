"""JWT token utilities."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from meeting_minutes.config import settings

DEFAULT_TIER = "free"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as seen by the transcription pipeline."""

    user_id: UUID
    tier: str = DEFAULT_TIER


def create_access_token(
    user_id: UUID,
    tier: str = DEFAULT_TIER,
    expires_delta: timedelta | None = None,
) -> str:
    """Create JWT access token carrying the user's tier."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    to_encode = {
        "sub": str(user_id),
        "tier": tier,
        "exp": expire,
        "type": "access",
    }

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Identity | None:
    """
    Verify JWT access token and return the caller's identity.
    Returns None if token is invalid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != "access":
        return None

    try:
        return Identity(user_id=UUID(user_id), tier=payload.get("tier") or DEFAULT_TIER)
    except ValueError:
        return None
