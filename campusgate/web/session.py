"""Cookie transport for signed session tokens."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from campusgate.auth.tokens import get_token_codec
from campusgate.config.settings import get_settings
from campusgate.exceptions import InvalidToken, UnauthenticatedAccess

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from campusgate.models.domain import TokenPayload

logger = structlog.get_logger(__name__)


def issue_session(response: Response, payload: TokenPayload) -> str:
    """Mint a token for ``payload`` and hand it to the client, replacing any held one."""
    settings = get_settings()
    codec = get_token_codec()
    token = codec.mint(payload)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=codec.max_age,
    )
    logger.debug("session_issued", role=payload.role.value, pending=payload.is_pending)
    return token


def read_session(request: Request) -> TokenPayload | None:
    """Return verified claims from the request's session cookie, or None."""
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return None
    try:
        return get_token_codec().decode(token)
    except InvalidToken:
        return None


def require_session(request: Request) -> TokenPayload:
    """Like ``read_session`` but raises UnauthenticatedAccess when there is no valid session."""
    session = read_session(request)
    if session is None:
        msg = "A valid session is required"
        raise UnauthenticatedAccess(msg)
    return session


def invalidate_session(response: Response) -> None:
    """Clear every cookie this service uses to hold a session."""
    settings = get_settings()
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
    )
    logger.info("session_invalidated")
