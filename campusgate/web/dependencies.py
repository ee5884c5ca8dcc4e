"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog
from fastapi import Depends, HTTPException

from campusgate.auth.flow import AuthFlow
from campusgate.auth.google import GoogleOAuthClient
from campusgate.auth.state_store import InMemoryStateStore
from campusgate.config.settings import get_settings
from campusgate.storage.repositories.identities import InMemoryIdentityRepository
from campusgate.storage.repositories.tenants import InMemoryTenantRepository

logger = structlog.get_logger(__name__)

CALLBACK_PATH = "/api/auth/callback/google"


@lru_cache
def get_tenant_registry() -> InMemoryTenantRepository | Any:
    """Create the appropriate tenant registry based on settings."""
    settings = get_settings()
    if settings.use_database:
        from campusgate.storage.database import get_engine
        from campusgate.storage.repositories.tenants import DatabaseTenantRepository

        return DatabaseTenantRepository(get_engine())
    return InMemoryTenantRepository.from_seed(settings.seed_tenants)


@lru_cache
def get_identity_store() -> InMemoryIdentityRepository | Any:
    """Create the appropriate identity store based on settings."""
    settings = get_settings()
    if settings.use_database:
        from campusgate.storage.database import get_engine
        from campusgate.storage.repositories.identities import DatabaseIdentityRepository

        return DatabaseIdentityRepository(get_engine())
    return InMemoryIdentityRepository()


@lru_cache
def get_state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


def get_auth_flow(
    tenants: Any = Depends(get_tenant_registry),
    identities: Any = Depends(get_identity_store),
) -> AuthFlow:
    """Build the auth flow with a fresh snapshot of the role allow-lists."""
    return AuthFlow(
        tenants=tenants,
        identities=identities,
        role_config=get_settings().role_classification(),
    )


def get_oauth_client() -> GoogleOAuthClient:
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        logger.error("google_oauth_not_configured")
        raise HTTPException(status_code=503, detail="Google sign-in is not configured")
    return GoogleOAuthClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=f"{settings.base_url.rstrip('/')}{CALLBACK_PATH}",
    )
