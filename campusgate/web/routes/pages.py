"""Server-rendered HTML page routes.

The route guard middleware has already admitted or redirected the request
by the time these handlers run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from campusgate.web.dependencies import get_tenant_registry
from campusgate.web.session import read_session

router = APIRouter(tags=["pages"])

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, error: str | None = None) -> HTMLResponse:
    return templates.TemplateResponse(request, "login.html", {"error": error})


@router.get("/login/{slug}", response_class=HTMLResponse)
async def tenant_login_page(
    request: Request,
    slug: str,
    error: str | None = None,
    tenants: Any = Depends(get_tenant_registry),
) -> HTMLResponse:
    tenant = await tenants.find_by_slug(slug)
    if tenant is not None and not tenant.is_active:
        tenant = None
    status_code = 200 if tenant is not None or error else 404
    return templates.TemplateResponse(
        request,
        "tenant_login.html",
        {
            "tenant": tenant,
            "slug": slug.lower(),
            "error": error,
            "signed_in": read_session(request) is not None,
        },
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse)
async def home_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "home.html", {"user": read_session(request)})


@router.get("/candidate/profile", response_class=HTMLResponse)
async def candidate_profile_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "profile.html", {"user": read_session(request)})
