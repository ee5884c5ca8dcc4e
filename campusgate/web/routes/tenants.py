"""Public tenant lookup used by tenant-branded login pages."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from campusgate.web.dependencies import get_tenant_registry

router = APIRouter(prefix="/api/tenants", tags=["tenants"])


class TenantPublic(BaseModel):
    id: str
    name: str
    slug: str
    email_domain: str
    logo: str = ""
    status: str
    resource_refs: list[str] = []


@router.get("/{slug}", response_model=TenantPublic)
async def get_tenant_by_slug(
    slug: str,
    tenants: Any = Depends(get_tenant_registry),
) -> TenantPublic:
    """Return the display name and required email domain for a tenant slug."""
    tenant = await tenants.find_by_slug(slug)
    if tenant is None or not tenant.is_active:
        raise HTTPException(status_code=404, detail="College not found")
    return TenantPublic(
        id=tenant.id,
        name=tenant.name,
        slug=tenant.slug,
        email_domain=tenant.email_domain,
        logo=tenant.logo,
        status=tenant.status,
        resource_refs=tenant.resource_refs(),
    )
