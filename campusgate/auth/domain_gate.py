"""Domain validation gate: an identity may only claim a tenant its email belongs to."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from campusgate.exceptions import DomainMismatch, TenantNotFound
from campusgate.models.domain import Role, email_domain

if TYPE_CHECKING:
    from campusgate.auth.binding import TenantBindingEngine
    from campusgate.models.database import Tenant
    from campusgate.storage.repositories.protocols import IdentityStore, TenantRegistry

logger = structlog.get_logger(__name__)


class DomainValidationGate:
    """Validates a claimed tenant against an email and fails closed on mismatch.

    On a mismatch, any unbound candidate record for the email is purged so an
    unvalidated address never keeps a durable record implying tenant access.
    """

    def __init__(
        self,
        tenants: TenantRegistry,
        identities: IdentityStore,
        engine: TenantBindingEngine,
    ) -> None:
        self._tenants = tenants
        self._identities = identities
        self._engine = engine

    async def validate(self, email: str, tenant_slug: str) -> Tenant:
        tenant = await self._tenants.find_by_slug(tenant_slug)
        if tenant is None or not tenant.is_active:
            logger.info("tenant_not_found", tenant_slug=tenant_slug)
            raise TenantNotFound(tenant_slug)

        if email_domain(email) != tenant.email_domain.lower():
            logger.warning(
                "domain_mismatch",
                email_domain=email_domain(email),
                required_domain=tenant.email_domain,
                tenant_slug=tenant.slug,
            )
            await self._purge_unvalidated(email)
            raise DomainMismatch(email, tenant.email_domain, tenant.name)

        return tenant

    async def _purge_unvalidated(self, email: str) -> None:
        existing = await self._identities.get_by_email(email)
        if existing is None or existing.is_bound or existing.role != Role.CANDIDATE.value:
            return
        await self._engine.unbind_if_unvalidated(existing)
