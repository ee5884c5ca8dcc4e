"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from campusgate import __version__
from campusgate.config.logging import setup_logging
from campusgate.config.settings import get_settings
from campusgate.exceptions import UnauthenticatedAccess
from campusgate.web.middleware import RequestIDMiddleware, RouteGuardMiddleware
from campusgate.web.routes.auth import router as auth_router
from campusgate.web.routes.candidate import router as candidate_router
from campusgate.web.routes.pages import router as pages_router
from campusgate.web.routes.tenants import router as tenants_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.use_database and settings.create_tables:
        from campusgate.storage.database import init_db

        await init_db()
        logger.info("database_tables_ensured")
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="CampusGate",
        description="Multi-tenant college sign-in and tenant binding",
        version=__version__,
        lifespan=lifespan,
    )

    # API callers get a JSON 401; browser page requests go to /login
    @app.exception_handler(UnauthenticatedAccess)
    async def unauthenticated_handler(
        request: Request, exc: UnauthenticatedAccess
    ) -> RedirectResponse | JSONResponse:
        if not request.url.path.startswith("/api/"):
            return RedirectResponse(url="/login", status_code=302)
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})

    # Middleware (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(RouteGuardMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(candidate_router)

    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        from campusgate.web.health import check_health

        return await check_health()

    # Page routes sit behind RouteGuardMiddleware
    app.include_router(pages_router)

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    logger.info("app_created", storage="database" if settings.use_database else "memory")
    return app
