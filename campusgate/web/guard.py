"""Route guard decisions.

A pure function of (path, query, session claims) to allow-or-redirect. It
reads the session token and never touches persisted state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

from campusgate.exceptions import TenantConflict

if TYPE_CHECKING:
    from campusgate.models.domain import TokenPayload

LOGIN_PATH = "/login"
HOME_PATH = "/"
ONBOARDING_PATH = "/candidate/profile"
REFRESH_PATH = "/api/auth/refresh-session"

_UNGUARDED_PREFIXES = ("/api/", "/static/")
_UNGUARDED_PATHS = frozenset({"/api", "/favicon.ico"})


class RouteClass(StrEnum):
    UNGUARDED = "unguarded"
    PUBLIC = "public"
    TENANT_LOGIN = "tenant_login"
    AUTHENTICATED_AREA = "authenticated_area"


@dataclass(frozen=True, slots=True)
class GuardDecision:
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


ALLOW = GuardDecision()


def tenant_login_url(slug: str, error: str | None = None) -> str:
    url = f"{LOGIN_PATH}/{quote(slug, safe='')}"
    if error:
        url = f"{url}?{urlencode({'error': error})}"
    return url


def refresh_url(redirect: str, **params: str) -> str:
    query = {"redirect": redirect, **params}
    return f"{REFRESH_PATH}?{urlencode(query)}"


def classify(path: str) -> tuple[RouteClass, str | None]:
    """Return the route class and, for tenant login pages, the tenant slug."""
    if path in _UNGUARDED_PATHS or path.startswith(_UNGUARDED_PREFIXES):
        return RouteClass.UNGUARDED, None

    trimmed = path.rstrip("/") or "/"
    if trimmed == LOGIN_PATH:
        return RouteClass.PUBLIC, None
    if trimmed.startswith(f"{LOGIN_PATH}/"):
        slug = trimmed[len(LOGIN_PATH) + 1 :]
        if slug and "/" not in slug:
            return RouteClass.TENANT_LOGIN, slug.lower()
    return RouteClass.AUTHENTICATED_AREA, None


def decide(path: str, query: Mapping[str, str], session: TokenPayload | None) -> GuardDecision:
    route, slug = classify(path)
    if route == RouteClass.UNGUARDED:
        return ALLOW

    if session is None:
        if route == RouteClass.AUTHENTICATED_AREA:
            return GuardDecision(redirect_to=LOGIN_PATH)
        return ALLOW

    if route == RouteClass.TENANT_LOGIN and slug is not None:
        bound = session.tenant_slug
        if bound and bound != slug:
            # Serve the page once the error is attached, so sign-out can be offered.
            if "error" in query:
                return ALLOW
            message = str(TenantConflict(bound, slug))
            return GuardDecision(redirect_to=tenant_login_url(slug, message))
        return GuardDecision(redirect_to=HOME_PATH)

    if route == RouteClass.PUBLIC:
        return GuardDecision(redirect_to=HOME_PATH)

    if session.is_candidate:
        if session.is_pending:
            if path.rstrip("/") == ONBOARDING_PATH:
                return ALLOW
            return GuardDecision(redirect_to=ONBOARDING_PATH)
        if session.tenant_id and not session.tenant_slug:
            return GuardDecision(redirect_to=refresh_url(path))

    return ALLOW
