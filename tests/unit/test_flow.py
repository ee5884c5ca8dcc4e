import pytest

from campusgate.exceptions import DomainMismatch, TenantConflict, TenantNotFound
from campusgate.models.database import Identity
from campusgate.models.domain import ProviderProfile, Role


@pytest.mark.unit
class TestAuthenticate:
    async def test_first_time_candidate_gets_pending_claims(self, flow, identities) -> None:
        payload = await flow.authenticate(ProviderProfile(email="bob@acme.edu", display_name="Bob"))
        assert payload.role == Role.CANDIDATE
        assert payload.is_pending
        assert await identities.get_by_email("bob@acme.edu") is None

    async def test_admin_gets_durable_claims(self, flow) -> None:
        payload = await flow.authenticate(ProviderProfile(email="dean@acme.edu"))
        assert payload.role == Role.ADMIN
        assert payload.identity_id is not None
        assert payload.tenant_id is None

    async def test_returning_bound_candidate(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        await flow.validate_tenant_email(session, "acme")

        payload = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        assert payload.tenant_slug == "acme"
        assert payload.identity_id is not None


@pytest.mark.unit
class TestValidateTenantEmail:
    async def test_acme_candidate_binds(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu", display_name="Bob"))
        identity = await flow.validate_tenant_email(session, "acme")
        assert identity.tenant_slug == "acme"
        assert identity.display_name == "Bob"

        refreshed = await flow.refresh(session)
        assert refreshed.tenant_slug == "acme"
        assert refreshed.email_domain == "acme.edu"

    async def test_other_domain_is_rejected_without_trace(self, flow, identities) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@other.edu"))
        with pytest.raises(DomainMismatch, match="acme.edu"):
            await flow.validate_tenant_email(session, "acme")
        assert await identities.get_by_email("bob@other.edu") is None

    async def test_bound_candidate_on_other_tenant_conflicts(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        await flow.validate_tenant_email(session, "acme")

        with pytest.raises(TenantConflict, match="already logged in with acme"):
            await flow.validate_tenant_email(session, "beta")

    async def test_unknown_tenant(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        with pytest.raises(TenantNotFound):
            await flow.validate_tenant_email(session, "gamma")

    async def test_staff_skips_tenant_gate(self, flow, identities) -> None:
        session = await flow.authenticate(ProviderProfile(email="registrar@beta.edu"))
        assert await flow.validate_tenant_email(session, "acme") is None
        stored = await identities.get_by_email("registrar@beta.edu")
        assert not stored.is_bound


@pytest.mark.unit
class TestRefresh:
    async def test_no_durable_identity(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        assert await flow.refresh(session) is None

    async def test_unbound_candidate_bound_by_email_domain(self, flow, identities) -> None:
        await identities.insert_if_absent(Identity(email="bob@acme.edu"))
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))

        payload = await flow.refresh(session)

        assert payload.tenant_id == "tenant-acme"
        assert payload.tenant_slug == "acme"

    async def test_mismatched_hint_is_ignored(self, flow, identities) -> None:
        await identities.insert_if_absent(Identity(email="bob@gamma.edu"))
        session = await flow.authenticate(ProviderProfile(email="bob@gamma.edu"))

        payload = await flow.refresh(session, tenant_id="tenant-acme")

        assert payload.tenant_id is None
        assert await identities.get_by_email("bob@gamma.edu") is not None

    async def test_hint_by_slug(self, flow, identities) -> None:
        await identities.insert_if_absent(Identity(email="ann@beta.edu"))
        session = await flow.authenticate(ProviderProfile(email="ann@beta.edu"))

        payload = await flow.refresh(session, tenant_slug="beta")

        assert payload.tenant_slug == "beta"

    async def test_refresh_never_moves_a_binding(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        await flow.validate_tenant_email(session, "acme")

        payload = await flow.refresh(session, tenant_id="tenant-beta", tenant_slug="beta")

        assert payload.tenant_slug == "acme"


@pytest.mark.unit
class TestCompleteOnboarding:
    async def test_candidate_with_matching_tenant_is_bound(self, flow) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu", display_name="B"))
        payload = await flow.complete_onboarding(session, "Bob Builder")
        assert payload.identity_id is not None
        assert payload.display_name == "Bob Builder"
        assert payload.tenant_slug == "acme"

    async def test_candidate_without_tenant_stays_unbound(self, flow) -> None:
        profile = ProviderProfile(email="kim@gmail.com", display_name="Kim")
        session = await flow.authenticate(profile)
        payload = await flow.complete_onboarding(session, "")
        assert payload.identity_id is not None
        assert payload.display_name == "Kim"
        assert payload.tenant_id is None

    async def test_existing_identity_renamed(self, flow, identities) -> None:
        session = await flow.authenticate(ProviderProfile(email="bob@acme.edu"))
        await flow.validate_tenant_email(session, "acme")

        payload = await flow.complete_onboarding(session, "  Robert ")

        assert payload.display_name == "Robert"
        assert (await identities.get_by_email("bob@acme.edu")).display_name == "Robert"
