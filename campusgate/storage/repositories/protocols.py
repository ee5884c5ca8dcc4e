"""Structural interfaces shared by the database and in-memory repositories."""

from __future__ import annotations

from typing import Protocol

from campusgate.models.database import Identity, Tenant


class TenantRegistry(Protocol):
    async def find_by_slug(self, slug: str) -> Tenant | None: ...

    async def find_by_id(self, tenant_id: str) -> Tenant | None: ...

    async def find_by_email_domain(self, domain: str) -> Tenant | None: ...


class IdentityStore(Protocol):
    async def get_by_id(self, identity_id: str) -> Identity | None: ...

    async def get_by_email(self, email: str) -> Identity | None: ...

    async def insert_if_absent(self, identity: Identity) -> Identity | None: ...

    async def touch_last_authenticated(self, identity_id: str) -> None: ...

    async def update_display_name(self, identity_id: str, display_name: str) -> None: ...

    async def bind_if_unbound(
        self,
        identity_id: str,
        *,
        tenant_id: str,
        tenant_slug: str,
        email_domain: str,
    ) -> bool: ...

    async def delete_if_unbound(self, identity_id: str) -> bool: ...
