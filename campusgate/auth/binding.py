"""Tenant binding engine: the UNBOUND -> BOUND(tenant) state machine.

There is no rebind transition. Once an identity carries a tenant binding,
a request to bind it elsewhere is a conflict, never an overwrite.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from campusgate.exceptions import DomainMismatch, IdentityNotFound, StorageError, TenantConflict
from campusgate.models.database import Identity
from campusgate.models.domain import Role, email_domain

if TYPE_CHECKING:
    from campusgate.models.database import Tenant
    from campusgate.models.domain import ProviderProfile
    from campusgate.storage.repositories.protocols import IdentityStore

logger = structlog.get_logger(__name__)


def _require_matching_domain(email: str, tenant: Tenant) -> str:
    domain = email_domain(email)
    if not domain or domain != tenant.email_domain.lower():
        raise DomainMismatch(email, tenant.email_domain, tenant.name)
    return domain


class TenantBindingEngine:
    """Sole writer of identity tenant bindings and sole deleter of identities."""

    def __init__(self, identities: IdentityStore) -> None:
        self._identities = identities

    async def bind(self, identity: Identity, tenant: Tenant) -> Identity:
        """Bind ``identity`` to ``tenant``.

        Returns the bound identity. Rebinding to the same tenant is a no-op.
        Raises TenantConflict if the identity is bound elsewhere and
        DomainMismatch if the email does not belong to the tenant.
        """
        # A binding never changes once written, so a bound snapshot is authoritative.
        if identity.is_bound:
            return self._settle(identity, tenant)

        domain = _require_matching_domain(identity.email, tenant)
        won = await self._identities.bind_if_unbound(
            identity.id,
            tenant_id=tenant.id,
            tenant_slug=tenant.slug,
            email_domain=domain,
        )
        if won:
            logger.info(
                "tenant_bound",
                identity_id=identity.id,
                tenant_id=tenant.id,
                tenant_slug=tenant.slug,
            )
            stored = await self._identities.get_by_id(identity.id)
            if stored is None:
                raise IdentityNotFound(identity.id)
            return stored

        stored = await self._identities.get_by_id(identity.id)
        if stored is None:
            raise IdentityNotFound(identity.id)
        return self._settle(stored, tenant)

    async def bind_new(self, profile: ProviderProfile, tenant: Tenant) -> Identity:
        """Create a candidate identity that is bound to ``tenant`` from the start."""
        domain = _require_matching_domain(profile.email, tenant)
        created = await self._identities.insert_if_absent(
            Identity(
                email=profile.email,
                display_name=profile.display_name,
                role=Role.CANDIDATE.value,
                tenant_id=tenant.id,
                tenant_slug=tenant.slug,
                email_domain=domain,
            )
        )
        if created is not None:
            logger.info(
                "tenant_bound",
                identity_id=created.id,
                tenant_id=tenant.id,
                tenant_slug=tenant.slug,
                first_login=True,
            )
            return created

        # Lost a first-login race: settle against whatever row won.
        existing = await self._identities.get_by_email(profile.email)
        if existing is None:
            msg = f"Identity insert for {profile.email} conflicted but no row exists"
            raise StorageError(msg)
        return await self.bind(existing, tenant)

    async def unbind_if_unvalidated(self, identity: Identity) -> bool:
        """Delete an identity that never completed a validated bind.

        The row is removed outright rather than left unbound, so it cannot be
        mistaken for a regular tenant-less candidate.
        """
        deleted = await self._identities.delete_if_unbound(identity.id)
        if deleted:
            logger.warning("identity_purged", identity_id=identity.id, email=identity.email)
        return deleted

    @staticmethod
    def _settle(stored: Identity, tenant: Tenant) -> Identity:
        if stored.tenant_id == tenant.id:
            _require_matching_domain(stored.email, tenant)
            logger.debug("tenant_bind_idempotent", identity_id=stored.id, tenant_id=tenant.id)
            return stored
        logger.warning(
            "tenant_conflict",
            identity_id=stored.id,
            bound_tenant=stored.tenant_slug,
            requested_tenant=tenant.slug,
        )
        raise TenantConflict(stored.tenant_slug or "", tenant.slug)
