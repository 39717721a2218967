"""Seed default tier limits and optionally create a user profile.

Usage:
    python init_tier_limits.py
    python init_tier_limits.py --email dev@example.com --tier pro
"""
import argparse
import asyncio
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from meeting_minutes.config import settings
from meeting_minutes.core.auth.jwt import create_access_token
from meeting_minutes.core.results import settle
from meeting_minutes.transcription.models import Tier, UserProfile
from meeting_minutes.transcription.repository import SqlTranscriptionRepository
from meeting_minutes.transcription.usage import UsageRecorder


async def init_tier_limits(email: str | None, tier: str) -> None:
    """Upsert the tier rows, then create the profile if one was requested."""
    engine = create_async_engine(settings.database_url)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    recorder = UsageRecorder(SqlTranscriptionRepository(session_factory))
    settle(await recorder.ensure_default_tier_limits(), "bootstrap")
    print("✓ Tier limits ensured: free, pro, admin")

    if email:
        async with session_factory() as session:
            result = await session.execute(select(UserProfile).where(UserProfile.email == email))
            profile = result.scalar_one_or_none()

            if profile:
                print(f"✓ Profile already exists: {email} ({profile.tier})")
            else:
                profile = UserProfile(id=uuid4(), email=email, tier=tier)
                session.add(profile)
                await session.commit()
                print(f"✓ Created profile: {email} ({tier})")

        print(f"  User ID: {profile.id}")
        print(f"  Access token: {create_access_token(profile.id, tier=profile.tier)}")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--email", help="Create a user profile with this email")
    parser.add_argument(
        "--tier",
        default=Tier.FREE.value,
        choices=[t.value for t in Tier],
        help="Tier for the new profile",
    )
    args = parser.parse_args()
    asyncio.run(init_tier_limits(args.email, args.tier))
