"""Health check endpoint logic."""

from __future__ import annotations

import structlog
from sqlalchemy.exc import SQLAlchemyError

from campusgate import __version__
from campusgate.config.settings import get_settings

logger = structlog.get_logger(__name__)


async def check_health() -> dict[str, object]:
    """Return application health status, probing the database when one is configured."""
    settings = get_settings()
    result: dict[str, object] = {
        "status": "healthy",
        "version": __version__,
        "storage": "database" if settings.use_database else "memory",
    }
    if not settings.use_database:
        return result

    result["database"] = "connected"
    try:
        from sqlalchemy import text

        from campusgate.storage.database import get_engine

        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_check_db_failed", error=str(exc))
        result["database"] = "unavailable"
        result["status"] = "degraded"

    return result
