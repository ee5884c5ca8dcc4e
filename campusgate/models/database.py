"""SQLModel database table models."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from campusgate.models.domain import Role, TenantStatus


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)  # lowercase, URL-safe
    email_domain: str = Field(unique=True, index=True)  # lowercase
    status: str = Field(default=TenantStatus.ACTIVE.value)  # active | inactive
    resource_refs_json: str = Field(default="[]")
    logo: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE.value

    def resource_refs(self) -> list[str]:
        """Opaque references to the resources available to this tenant's members."""
        return [str(ref) for ref in json.loads(self.resource_refs_json or "[]")]


class Identity(SQLModel, table=True):
    __tablename__ = "identities"
    # Binding columns are written together or not at all.
    __table_args__ = (
        CheckConstraint(
            "(tenant_id IS NULL AND tenant_slug IS NULL AND email_domain IS NULL) OR "
            "(tenant_id IS NOT NULL AND tenant_slug IS NOT NULL AND email_domain IS NOT NULL)",
            name="ck_identities_binding_complete",
        ),
    )

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    email: str = Field(unique=True, index=True)  # stored lowercase
    display_name: str = ""
    role: str = Field(default=Role.CANDIDATE.value)  # candidate | staff | admin
    tenant_id: str | None = Field(default=None, foreign_key="tenants.id", index=True)
    tenant_slug: str | None = None
    email_domain: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    last_authenticated_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_bound(self) -> bool:
        return self.tenant_id is not None


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(default="", index=True)
    identity_id: str = Field(default="", index=True)
    action: str = Field(index=True)  # auth.login | tenant.bind | tenant.conflict | ...
    details_json: str = "{}"
    ip_address: str = ""
    request_id: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
