"""Authentication routes: Google sign-in, tenant email validation, session refresh, sign-out."""

from __future__ import annotations

import secrets
from typing import Any
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from campusgate.audit.logger import audit
from campusgate.auth.flow import AuthFlow
from campusgate.auth.google import GoogleOAuthClient, generate_pkce_pair
from campusgate.auth.state_store import InMemoryStateStore, PendingAuthorization
from campusgate.config.settings import get_settings
from campusgate.exceptions import (
    DomainMismatch,
    IdentityNotFound,
    IdentityProviderError,
    StorageError,
    TenantConflict,
    TenantNotFound,
)
from campusgate.models.domain import TokenPayload
from campusgate.web.dependencies import (
    get_auth_flow,
    get_oauth_client,
    get_state_store,
    get_tenant_registry,
)
from campusgate.web.guard import (
    HOME_PATH,
    LOGIN_PATH,
    ONBOARDING_PATH,
    refresh_url,
    tenant_login_url,
)
from campusgate.web.session import (
    invalidate_session,
    issue_session,
    read_session,
    require_session,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

VALIDATE_PATH = "/api/auth/validate-college-email"

# Failures that send the user back to the generic login page to retry.
# OSError covers driver-level connection failures that asyncpg raises unwrapped.
_UNEXPECTED = (
    SQLAlchemyError,
    OSError,
    StorageError,
    IdentityNotFound,
    IdentityProviderError,
)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


def _local_path(target: str | None, default: str) -> str:
    """Accept only same-origin absolute paths as redirect targets."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    return target


def _user_json(payload: TokenPayload) -> dict[str, Any]:
    return {
        "id": payload.identity_id,
        "email": payload.email,
        "display_name": payload.display_name,
        "role": payload.role.value,
        "tenant_id": payload.tenant_id,
        "tenant_slug": payload.tenant_slug,
        "email_domain": payload.email_domain,
    }


# ---------------------------------------------------------------------------
# Google OAuth handshake
# ---------------------------------------------------------------------------


@router.get("/signin")
async def signin(
    college_slug: str | None = Query(default=None, alias="collegeSlug"),
    redirect: str | None = Query(default=None),
    client: GoogleOAuthClient = Depends(get_oauth_client),
    store: InMemoryStateStore = Depends(get_state_store),
    tenants: Any = Depends(get_tenant_registry),
) -> RedirectResponse:
    """Start the Google sign-in handshake, optionally from a tenant login page."""
    slug = college_slug.strip().lower() if college_slug else None
    if slug:
        tenant = await tenants.find_by_slug(slug)
        if tenant is None or not tenant.is_active:
            logger.info("signin_unknown_tenant", tenant_slug=slug)
            return _redirect(LOGIN_PATH)

    code_verifier, code_challenge = generate_pkce_pair()
    state = secrets.token_urlsafe(32)
    store.set(
        state,
        PendingAuthorization(
            code_verifier=code_verifier,
            tenant_slug=slug,
            redirect=_local_path(redirect, HOME_PATH),
        ),
        ttl_seconds=get_settings().oauth_state_ttl,
    )
    logger.info("signin_initiated", tenant_slug=slug)
    return _redirect(client.authorization_url(state, code_challenge))


@router.get("/callback/google")
async def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    client: GoogleOAuthClient = Depends(get_oauth_client),
    store: InMemoryStateStore = Depends(get_state_store),
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """Finish the provider round trip and issue the first-pass session."""
    if error or not code or not state:
        logger.info("oauth_callback_rejected", error=error)
        return _redirect(LOGIN_PATH)

    pending = store.pop(state)
    if pending is None:
        logger.warning("oauth_state_unknown_or_expired")
        return _redirect(LOGIN_PATH)

    try:
        profile = await client.fetch_profile(code, pending.code_verifier)
        payload = await flow.authenticate(profile)
    except _UNEXPECTED:
        logger.exception("oauth_callback_failed", tenant_slug=pending.tenant_slug)
        return _redirect(LOGIN_PATH)

    if pending.tenant_slug:
        target = f"{VALIDATE_PATH}?{urlencode({'collegeSlug': pending.tenant_slug})}"
    else:
        target = pending.redirect or HOME_PATH

    response = _redirect(target)
    issue_session(response, payload)
    await audit(
        request,
        action="auth.login",
        tenant_id=payload.tenant_id,
        identity_id=payload.identity_id,
        details={"role": payload.role.value, "pending": payload.is_pending},
    )
    logger.info("user_signed_in", role=payload.role.value, pending=payload.is_pending)
    return response


# ---------------------------------------------------------------------------
# Tenant email validation (domain gate + binding)
# ---------------------------------------------------------------------------


@router.get("/validate-college-email")
async def validate_college_email(
    request: Request,
    college_slug: str | None = Query(default=None, alias="collegeSlug"),
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """Gate the signed-in email against the tenant and bind it on success."""
    if not college_slug:
        return _redirect(LOGIN_PATH)
    slug = college_slug.strip().lower()

    session = read_session(request)
    if session is None:
        return _redirect(LOGIN_PATH)

    try:
        identity = await flow.validate_tenant_email(session, slug)
    except TenantNotFound:
        return _redirect(LOGIN_PATH)
    except (DomainMismatch, TenantConflict) as exc:
        response = _redirect(tenant_login_url(slug, str(exc)))
        invalidate_session(response)
        action = "tenant.domain_mismatch" if isinstance(exc, DomainMismatch) else "tenant.conflict"
        await audit(
            request, action=action, identity_id=session.identity_id, details={"slug": slug}
        )
        return response
    except _UNEXPECTED:
        logger.exception("tenant_validation_failed", tenant_slug=slug)
        return _redirect(LOGIN_PATH)

    if identity is None:
        return _redirect(HOME_PATH)

    await audit(
        request,
        action="tenant.bind",
        tenant_id=identity.tenant_id,
        identity_id=identity.id,
        details={"slug": identity.tenant_slug},
    )
    return _redirect(
        refresh_url(
            ONBOARDING_PATH,
            collegeId=identity.tenant_id or "",
            collegeSlug=identity.tenant_slug or "",
        )
    )


# ---------------------------------------------------------------------------
# Session refresh (re-mint after durable state changed)
# ---------------------------------------------------------------------------


@router.get("/refresh-session")
async def refresh_session_redirect(
    request: Request,
    redirect: str | None = None,
    college_id: str | None = Query(default=None, alias="collegeId"),
    college_slug: str | None = Query(default=None, alias="collegeSlug"),
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """Re-mint the session from the identity store, then continue to ``redirect``."""
    session = read_session(request)
    if session is None:
        return _redirect(LOGIN_PATH)

    try:
        payload = await flow.refresh(
            session,
            tenant_id=college_id or None,
            tenant_slug=college_slug.strip().lower() if college_slug else None,
        )
    except _UNEXPECTED:
        logger.exception("session_refresh_failed")
        return _redirect(LOGIN_PATH)

    if payload is None:
        return _redirect(LOGIN_PATH)

    response = _redirect(_local_path(redirect, ONBOARDING_PATH))
    issue_session(response, payload)
    return response


@router.post("/refresh-session")
async def refresh_session_json(
    request: Request,
    response: Response,
    flow: AuthFlow = Depends(get_auth_flow),
) -> dict[str, Any]:
    """Re-mint the session and return the resolved identity."""
    session = require_session(request)

    try:
        payload = await flow.refresh(session)
    except _UNEXPECTED as exc:
        logger.exception("session_refresh_failed")
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    if payload is None:
        raise HTTPException(status_code=404, detail="User not found")

    issue_session(response, payload)
    return {"success": True, "user": _user_json(payload)}


# ---------------------------------------------------------------------------
# Sign-out
# ---------------------------------------------------------------------------


@router.api_route("/signout", methods=["GET", "POST"])
async def signout(request: Request, next: str | None = None) -> RedirectResponse:  # noqa: A002
    """Clear the session and return to a login page."""
    session = read_session(request)
    response = RedirectResponse(url=_local_path(next, LOGIN_PATH), status_code=303)
    invalidate_session(response)
    await audit(
        request,
        action="auth.logout",
        tenant_id=session.tenant_id if session else None,
        identity_id=session.identity_id if session else None,
    )
    return response
