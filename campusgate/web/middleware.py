"""FastAPI middleware: request ID injection and the session route guard."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import RedirectResponse

from campusgate.web.guard import decide
from campusgate.web.session import read_session

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds a unique X-Request-ID header to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Redirects page requests whose session state does not admit the target route.

    API and static paths pass straight through; API handlers do their own
    session checks.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session = read_session(request)
        decision = decide(request.url.path, request.query_params, session)
        if decision.allowed:
            return await call_next(request)

        logger.info(
            "route_guard_redirect",
            path=request.url.path,
            redirect_to=decision.redirect_to,
            has_session=session is not None,
        )
        return RedirectResponse(url=decision.redirect_to or "/login", status_code=302)
