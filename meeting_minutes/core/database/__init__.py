"""Async SQLAlchemy engine, session dependency and declarative base."""

from meeting_minutes.core.database.base import Base, TimestampMixin, UUIDMixin
from meeting_minutes.core.database.session import async_session_factory, engine, get_db

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "async_session_factory",
    "engine",
    "get_db",
]
