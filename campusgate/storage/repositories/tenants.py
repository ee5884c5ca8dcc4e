"""Tenant registry: read-only lookups against the authoritative tenant store."""

from __future__ import annotations

from typing import Any

import structlog

from campusgate.exceptions import ConfigError
from campusgate.models.database import Tenant

logger = structlog.get_logger(__name__)


def _norm(value: str) -> str:
    return value.strip().lower()


class DatabaseTenantRepository:
    """PostgreSQL-backed tenant registry."""

    def __init__(self, engine: Any) -> None:
        self._engine = engine

    async def find_by_slug(self, slug: str) -> Tenant | None:
        return await self._find_one("slug", _norm(slug))

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        return await self._find_one("id", tenant_id)

    async def find_by_email_domain(self, domain: str) -> Tenant | None:
        return await self._find_one("email_domain", _norm(domain).lstrip("@"))

    async def _find_one(self, column: str, value: str) -> Tenant | None:
        from sqlmodel import col, select
        from sqlmodel.ext.asyncio.session import AsyncSession

        if not value:
            return None
        async with AsyncSession(self._engine) as session:
            stmt = select(Tenant).where(col(getattr(Tenant, column)) == value)
            result = await session.execute(stmt)
            tenant = result.scalars().first()
        if tenant is None:
            logger.debug("tenant_lookup_miss", column=column, value=value)
        return tenant


class InMemoryTenantRepository:
    """In-memory fallback for dev/testing without a database."""

    def __init__(self, tenants: list[Tenant] | None = None) -> None:
        self._tenants: dict[str, Tenant] = {}
        for tenant in tenants or []:
            self.add(tenant)

    def add(self, tenant: Tenant) -> Tenant:
        """Register a tenant, enforcing slug and email-domain uniqueness."""
        tenant.slug = _norm(tenant.slug)
        tenant.email_domain = _norm(tenant.email_domain).lstrip("@")
        for existing in self._tenants.values():
            if existing.id == tenant.id:
                continue
            if existing.slug == tenant.slug:
                msg = f"Tenant slug already registered: {tenant.slug}"
                raise ValueError(msg)
            if existing.email_domain == tenant.email_domain:
                msg = f"Tenant email domain already registered: {tenant.email_domain}"
                raise ValueError(msg)
        self._tenants[tenant.id] = tenant
        return tenant

    @classmethod
    def from_seed(cls, entries: list[dict[str, str]]) -> InMemoryTenantRepository:
        """Build a registry from settings-style entries; slug and email_domain are required."""
        tenants = []
        for entry in entries:
            slug = entry.get("slug", "").strip()
            domain = entry.get("email_domain", "").strip()
            if not slug or not domain:
                msg = f"Seed tenant needs slug and email_domain: {entry!r}"
                raise ConfigError(msg)
            tenants.append(
                Tenant(
                    name=entry.get("name") or slug,
                    slug=slug,
                    email_domain=domain,
                    logo=entry.get("logo", ""),
                )
            )
        try:
            repo = cls(tenants)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        logger.info("tenants_seeded", count=len(tenants))
        return repo

    async def find_by_slug(self, slug: str) -> Tenant | None:
        slug = _norm(slug)
        return next((t for t in self._tenants.values() if t.slug == slug), None)

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        return self._tenants.get(tenant_id)

    async def find_by_email_domain(self, domain: str) -> Tenant | None:
        domain = _norm(domain).lstrip("@")
        return next((t for t in self._tenants.values() if t.email_domain == domain), None)
