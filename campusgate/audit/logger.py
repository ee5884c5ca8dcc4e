"""Audit logger: immutable, insert-only trail of authentication events.

Uses its own DB session so audit entries survive transaction rollbacks.
Details JSON is sanitized (sensitive fields stripped, 10KB max).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from campusgate.models.database import AuditLog

if TYPE_CHECKING:
    from fastapi import Request
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "access_token",
        "id_token",
        "code",
        "code_verifier",
        "authorization",
        "cookie",
        "session",
    }
)

_MAX_DETAILS_BYTES = 10_240  # 10KB


def _sanitize_details(details: dict[str, Any]) -> str:
    """Strip sensitive fields and enforce size limit."""
    sanitized = {k: v for k, v in details.items() if k.lower() not in _SENSITIVE_FIELDS}
    encoded = json.dumps(sanitized, default=str)
    if len(encoded) > _MAX_DETAILS_BYTES:
        encoded = encoded[:_MAX_DETAILS_BYTES]
    return encoded


class AuditLogger:
    """Insert-only audit logger with its own DB session."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def log(
        self,
        *,
        action: str,
        tenant_id: str = "",
        identity_id: str = "",
        details: dict[str, Any] | None = None,
        ip_address: str = "",
        request_id: str = "",
    ) -> None:
        """Write an audit log entry."""
        entry = AuditLog(
            action=action,
            tenant_id=tenant_id,
            identity_id=identity_id,
            details_json=_sanitize_details(details or {}),
            ip_address=ip_address,
            request_id=request_id,
        )
        try:
            async with AsyncSession(self._engine) as session:
                session.add(entry)
                await session.commit()
        except Exception:
            # Audit must never break the request
            logger.exception("audit_log_failed", action=action, tenant_id=tenant_id)


async def audit(
    request: Request,
    *,
    action: str,
    tenant_id: str | None = None,
    identity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Log an audit entry for ``request`` if a database is configured.

    Silently no-ops when USE_DATABASE=false (dev mode).
    """
    from campusgate.config.settings import get_settings

    settings = get_settings()
    if not settings.use_database:
        return

    from campusgate.storage.database import get_engine

    await AuditLogger(get_engine()).log(
        action=action,
        tenant_id=tenant_id or "",
        identity_id=identity_id or "",
        details=details,
        ip_address=request.client.host if request.client else "",
        request_id=request.headers.get("x-request-id", ""),
    )
