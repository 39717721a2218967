"""Startup check that the database schema is at the Alembic head revision."""

from pathlib import Path
from typing import Any

from alembic import script
from alembic.config import Config
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from meeting_minutes.core.logging import get_logger

logger = get_logger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[3] / "alembic.ini"


def head_revision(alembic_ini: Path = ALEMBIC_INI) -> str | None:
    """Latest revision in the migration scripts, or None without alembic.ini."""
    if not alembic_ini.exists():
        logger.error("alembic_ini_missing", path=str(alembic_ini))
        return None
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(alembic_ini.parent / "alembic"))
    return script.ScriptDirectory.from_config(config).get_current_head()


async def check_migration_status(engine: AsyncEngine) -> dict[str, Any]:
    """Compare the database revision with the head revision.

    Returns:
        alembic_table_exists, current_revision, head_revision, is_up_to_date
    """
    result: dict[str, Any] = {
        "alembic_table_exists": False,
        "current_revision": None,
        "head_revision": head_revision(),
        "is_up_to_date": False,
    }

    async with engine.connect() as conn:
        table_exists = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table("alembic_version")
        )
        result["alembic_table_exists"] = table_exists
        if not table_exists:
            return result
        result["current_revision"] = await conn.scalar(text("SELECT version_num FROM alembic_version"))

    result["is_up_to_date"] = (
        result["head_revision"] is not None
        and result["current_revision"] == result["head_revision"]
    )
    return result


async def require_migrations(engine: AsyncEngine, fail_on_outdated: bool = True) -> None:
    """Log migration status; raise RuntimeError when outdated and ``fail_on_outdated``."""
    try:
        status = await check_migration_status(engine)
    except SQLAlchemyError as e:
        logger.error("migration_check_database_unreachable", error=str(e))
        if fail_on_outdated:
            raise RuntimeError(f"Database unreachable during migration check: {e}") from e
        return

    if status["is_up_to_date"]:
        logger.info("migrations_up_to_date", revision=status["current_revision"])
        return

    message = (
        "Database migrations are not up to date "
        f"(current: {status['current_revision']}, head: {status['head_revision']}). "
        "Run: alembic upgrade head"
    )
    logger.error(
        "migrations_out_of_date",
        current_revision=status["current_revision"],
        head_revision=status["head_revision"],
        alembic_table_exists=status["alembic_table_exists"],
    )
    if fail_on_outdated:
        raise RuntimeError(message)
