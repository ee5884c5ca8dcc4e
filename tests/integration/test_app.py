from urllib.parse import parse_qs, urlsplit

import pytest

from campusgate.auth.tokens import get_token_codec
from campusgate.models.database import Tenant
from campusgate.models.domain import Role, TokenPayload

PENDING = TokenPayload(email="kim@gmail.com", display_name="Kim", role=Role.CANDIDATE)
BOUND_ACME = TokenPayload(
    email="bob@acme.edu",
    display_name="Bob",
    role=Role.CANDIDATE,
    identity_id="identity-1",
    tenant_id="tenant-acme",
    tenant_slug="acme",
    email_domain="acme.edu",
)


@pytest.mark.integration
class TestAppFactory:
    async def test_health(self, client) -> None:
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0", "storage": "memory"}

    async def test_request_id_echoed(self, client) -> None:
        response = await client.get("/api/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["x-request-id"] == "req-42"

    async def test_request_id_generated(self, client) -> None:
        response = await client.get("/api/health")
        assert len(response.headers["x-request-id"]) == 36


@pytest.mark.integration
class TestPages:
    async def test_anonymous_home_redirects_to_login(self, client) -> None:
        response = await client.get("/")
        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    async def test_login_page(self, client) -> None:
        response = await client.get("/login")
        assert response.status_code == 200
        assert "Sign in" in response.text

    async def test_tenant_login_page(self, client) -> None:
        response = await client.get("/login/acme")
        assert response.status_code == 200
        assert "Acme College" in response.text
        assert "@acme.edu" in response.text
        assert "/api/auth/signin?collegeSlug=acme" in response.text

    async def test_unknown_tenant_login_page(self, client) -> None:
        response = await client.get("/login/nowhere")
        assert response.status_code == 404

    async def test_conflict_redirect_then_page_with_signout(self, client, use_session) -> None:
        use_session(client, BOUND_ACME)

        redirected = await client.get("/login/beta")
        assert redirected.status_code == 302
        location = redirected.headers["location"]
        assert urlsplit(location).path == "/login/beta"
        assert "already logged in with acme" in parse_qs(urlsplit(location).query)["error"][0]

        page = await client.get(location)
        assert page.status_code == 200
        assert "already logged in with acme" in page.text
        assert "/api/auth/signout?next=/login/beta" in page.text

    async def test_signed_in_user_leaves_login(self, client, use_session) -> None:
        use_session(client, BOUND_ACME)
        response = await client.get("/login")
        assert response.headers["location"] == "/"

    async def test_pending_candidate_sent_to_onboarding(self, client, use_session) -> None:
        use_session(client, PENDING)
        response = await client.get("/")
        assert response.headers["location"] == "/candidate/profile"

        profile = await client.get("/candidate/profile")
        assert profile.status_code == 200
        assert "kim@gmail.com" in profile.text

    async def test_bound_candidate_home(self, client, use_session) -> None:
        use_session(client, BOUND_ACME)
        response = await client.get("/")
        assert response.status_code == 200
        assert "Welcome, Bob" in response.text

    async def test_tampered_cookie_is_anonymous(self, client, use_session) -> None:
        use_session(client, "not-a-real-token")
        response = await client.get("/")
        assert response.headers["location"] == "/login"


@pytest.mark.integration
class TestTenantLookup:
    async def test_lookup_by_slug(self, client) -> None:
        response = await client.get("/api/tenants/ACME")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Acme College"
        assert body["email_domain"] == "acme.edu"
        assert body["status"] == "active"
        assert body["resource_refs"] == []

    async def test_unknown_slug(self, client) -> None:
        response = await client.get("/api/tenants/nowhere")
        assert response.status_code == 404

    async def test_inactive_tenant_is_not_found(self, client, tenants) -> None:
        tenants.add(
            Tenant(
                name="Closed College", slug="closed", email_domain="closed.edu", status="inactive"
            )
        )
        response = await client.get("/api/tenants/closed")
        assert response.status_code == 404


@pytest.mark.integration
class TestOnboarding:
    async def test_requires_session(self, client) -> None:
        response = await client.post("/api/candidate/onboarding", json={"display_name": "Kim"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    async def test_tenantless_candidate_gets_durable_identity(
        self, client, use_session, identities
    ) -> None:
        use_session(client, PENDING)

        response = await client.post(
            "/api/candidate/onboarding", json={"display_name": "Kim Lee"}
        )

        assert response.status_code == 200
        stored = await identities.get_by_email("kim@gmail.com")
        assert stored.display_name == "Kim Lee"
        assert not stored.is_bound
        assert response.json()["identity_id"] == stored.id
        token = response.cookies.get("campusgate_session")
        assert get_token_codec().decode(token).identity_id == stored.id

    async def test_staff_rejected(self, client, use_session) -> None:
        use_session(
            client,
            TokenPayload(
                email="ops@campusgate.io", display_name="", role=Role.STAFF, identity_id="i-2"
            ),
        )
        response = await client.post("/api/candidate/onboarding", json={})
        assert response.status_code == 400
