"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from campusgate.auth.flow import AuthFlow
from campusgate.auth.google import GoogleOAuthClient
from campusgate.auth.tokens import get_token_codec
from campusgate.config.settings import get_settings
from campusgate.models.database import Tenant
from campusgate.models.domain import RoleClassificationConfig, TokenPayload
from campusgate.storage.repositories.identities import InMemoryIdentityRepository
from campusgate.storage.repositories.tenants import InMemoryTenantRepository
from campusgate.web.dependencies import (
    get_identity_store,
    get_oauth_client,
    get_state_store,
    get_tenant_registry,
)

SESSION_COOKIE = "campusgate_session"


def _clear_caches() -> None:
    for cached in (
        get_settings,
        get_token_codec,
        get_tenant_registry,
        get_identity_store,
        get_state_store,
    ):
        cached.cache_clear()


@pytest.fixture(autouse=True)
def settings_env(monkeypatch: pytest.MonkeyPatch):
    """Deterministic settings for every test; caches rebuilt around each one."""
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("USE_DATABASE", "false")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("ADMIN_EMAILS", "root@campusgate.io")
    monkeypatch.setenv("STAFF_EMAILS", "")
    monkeypatch.setenv("STAFF_DOMAIN_SUFFIX", "campusgate.io")
    _clear_caches()
    yield get_settings()
    _clear_caches()


@pytest.fixture()
def acme() -> Tenant:
    return Tenant(id="tenant-acme", name="Acme College", slug="acme", email_domain="acme.edu")


@pytest.fixture()
def beta() -> Tenant:
    return Tenant(id="tenant-beta", name="Beta University", slug="beta", email_domain="beta.edu")


@pytest.fixture()
def tenants(acme: Tenant, beta: Tenant) -> InMemoryTenantRepository:
    return InMemoryTenantRepository([acme, beta])


@pytest.fixture()
def identities() -> InMemoryIdentityRepository:
    return InMemoryIdentityRepository()


@pytest.fixture()
def role_config() -> RoleClassificationConfig:
    return RoleClassificationConfig(
        admin_emails=frozenset({"root@campusgate.io", "dean@acme.edu"}),
        staff_emails=frozenset({"registrar@beta.edu"}),
        staff_domain_suffix="campusgate.io",
    )


@pytest.fixture()
def flow(tenants, identities, role_config) -> AuthFlow:
    return AuthFlow(tenants=tenants, identities=identities, role_config=role_config)


@pytest.fixture()
def google_userinfo() -> dict[str, Any]:
    """Mutable userinfo document the mocked Google endpoints return."""
    return {"email": "bob@acme.edu", "email_verified": True, "name": "Bob"}


@pytest.fixture()
def google_transport(google_userinfo: dict[str, Any]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "ya29.test", "token_type": "Bearer"})
        if request.url.host == "openidconnect.googleapis.com":
            assert request.headers["authorization"] == "Bearer ya29.test"
            return httpx.Response(200, json=google_userinfo)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture()
def app(tenants, identities, google_transport):
    """A fresh app wired to in-memory repositories and a mocked Google."""
    from campusgate.web.app import create_app

    application = create_app()
    application.dependency_overrides[get_tenant_registry] = lambda: tenants
    application.dependency_overrides[get_identity_store] = lambda: identities
    application.dependency_overrides[get_oauth_client] = lambda: GoogleOAuthClient(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://test/api/auth/callback/google",
        transport=google_transport,
    )
    return application


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def use_session() -> Callable[[AsyncClient, TokenPayload | str], str]:
    """Replace whatever session the client holds with the given claims or token."""

    def _use(ac: AsyncClient, session: TokenPayload | str) -> str:
        token = session if isinstance(session, str) else get_token_codec().mint(session)
        ac.cookies.clear()
        ac.cookies.set(SESSION_COOKIE, token)
        return token

    return _use


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def file_engine(tmp_path):
    """File-backed SQLite engine, so concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'campusgate.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()
