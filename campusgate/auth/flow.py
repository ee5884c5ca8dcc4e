"""Authentication flow: provider callback -> resolver -> gate -> binding -> token claims.

Every step works against the durable identity store and returns fresh token
claims; callers deliver them to the client by minting a new session token.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from campusgate.auth.binding import TenantBindingEngine
from campusgate.auth.domain_gate import DomainValidationGate
from campusgate.auth.resolver import IdentityResolver
from campusgate.auth.tokens import project_identity_into_token, project_profile_into_token
from campusgate.exceptions import IdentityNotFound, TenantConflict, TenantNotFound
from campusgate.models.database import Identity
from campusgate.models.domain import ProviderProfile, Role, email_domain

if TYPE_CHECKING:
    from campusgate.models.database import Tenant
    from campusgate.models.domain import RoleClassificationConfig, TokenPayload
    from campusgate.storage.repositories.protocols import IdentityStore, TenantRegistry

logger = structlog.get_logger(__name__)


class AuthFlow:
    """Coordinates the auth core components for one request at a time."""

    def __init__(
        self,
        tenants: TenantRegistry,
        identities: IdentityStore,
        role_config: RoleClassificationConfig,
    ) -> None:
        self._tenants = tenants
        self._identities = identities
        self._role_config = role_config
        self.engine = TenantBindingEngine(identities)
        self.resolver = IdentityResolver(identities)
        self.gate = DomainValidationGate(tenants, identities, self.engine)

    async def authenticate(self, profile: ProviderProfile) -> TokenPayload:
        """Resolve a provider profile into first-pass session claims."""
        resolution = await self.resolver.resolve(profile, self._role_config)
        if resolution.identity is None:
            return project_profile_into_token(profile, resolution.role)
        return project_identity_into_token(resolution.identity)

    async def validate_tenant_email(
        self, session: TokenPayload, tenant_slug: str
    ) -> Identity | None:
        """Gate and bind the session's identity to the tenant behind ``tenant_slug``.

        Returns the bound identity, or None for organisational accounts, which
        are not tenant-gated. Raises TenantNotFound, DomainMismatch or
        TenantConflict.
        """
        existing = await self._identities.get_by_email(session.email)
        role = existing.role if existing is not None else session.role.value
        if role != Role.CANDIDATE.value:
            logger.info("tenant_gate_skipped", role=role)
            return None

        # An identity bound elsewhere is a conflict whatever its domain says.
        if existing is not None and existing.is_bound:
            tenant = await self._find_active(tenant_slug)
            return await self.engine.bind(existing, tenant)

        tenant = await self.gate.validate(session.email, tenant_slug)
        if existing is None:
            profile = ProviderProfile(email=session.email, display_name=session.display_name)
            return await self.engine.bind_new(profile, tenant)
        return await self.engine.bind(existing, tenant)

    async def refresh(
        self,
        session: TokenPayload,
        tenant_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> TokenPayload | None:
        """Reconcile durable identity state into fresh claims.

        Returns None when the session has no durable identity behind it.
        """
        identity = await self._identities.get_by_email(session.email)
        if identity is None:
            return None

        if identity.role == Role.CANDIDATE.value and not identity.is_bound:
            tenant = await self._reconcile_target(identity, tenant_id, tenant_slug)
            if tenant is not None:
                try:
                    identity = await self.engine.bind(identity, tenant)
                except TenantConflict:
                    # A concurrent request bound it first; report what is stored.
                    identity = await self._identities.get_by_id(identity.id) or identity

        logger.info(
            "session_refreshed",
            identity_id=identity.id,
            tenant_slug=identity.tenant_slug,
        )
        return project_identity_into_token(identity)

    async def complete_onboarding(self, session: TokenPayload, display_name: str) -> TokenPayload:
        """Create the durable record for a candidate who signed in without a tenant."""
        display_name = display_name.strip() or session.display_name
        existing = await self._identities.get_by_email(session.email)
        if existing is not None:
            if display_name and display_name != existing.display_name:
                await self._identities.update_display_name(existing.id, display_name)
        else:
            profile = ProviderProfile(email=session.email, display_name=display_name)
            tenant = await self._tenants.find_by_email_domain(email_domain(session.email))
            bindable = tenant is not None and tenant.is_active
            if bindable:
                await self.engine.bind_new(profile, tenant)
            else:
                await self._identities.insert_if_absent(
                    Identity(
                        email=profile.email,
                        display_name=profile.display_name,
                        role=Role.CANDIDATE.value,
                    )
                )
            logger.info("onboarding_completed", tenant_bound=bindable)

        refreshed = await self.refresh(session)
        if refreshed is None:
            msg = f"Identity for {session.email} vanished during onboarding"
            raise IdentityNotFound(msg)
        return refreshed

    async def _find_active(self, tenant_slug: str) -> Tenant:
        tenant = await self._tenants.find_by_slug(tenant_slug)
        if tenant is None or not tenant.is_active:
            raise TenantNotFound(tenant_slug)
        return tenant

    async def _reconcile_target(
        self,
        identity: Identity,
        tenant_id: str | None,
        tenant_slug: str | None,
    ) -> Tenant | None:
        domain = email_domain(identity.email)
        hinted: Tenant | None = None
        if tenant_id:
            hinted = await self._tenants.find_by_id(tenant_id)
        elif tenant_slug:
            hinted = await self._tenants.find_by_slug(tenant_slug)

        if hinted is not None:
            if hinted.is_active and hinted.email_domain == domain:
                return hinted
            logger.warning(
                "refresh_hint_ignored",
                identity_id=identity.id,
                hinted_tenant=hinted.slug,
            )

        tenant = await self._tenants.find_by_email_domain(domain)
        if tenant is not None and tenant.is_active:
            return tenant
        return None
