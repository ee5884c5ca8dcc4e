"""Identity and session value types shared across the auth core (not persisted)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    CANDIDATE = "candidate"
    STAFF = "staff"
    ADMIN = "admin"


class TenantStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def email_domain(email: str) -> str:
    """Return the lowercase domain part of an email address ("" if none)."""
    _, at, domain = email.strip().rpartition("@")
    return domain.lower() if at else ""


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """Profile returned by the external identity provider."""

    email: str
    display_name: str = ""


@dataclass(frozen=True, slots=True)
class RoleClassificationConfig:
    """Allow-lists deciding which provider emails are organisational accounts."""

    admin_emails: frozenset[str] = frozenset()
    staff_emails: frozenset[str] = frozenset()
    staff_domain_suffix: str = ""


@dataclass(frozen=True, slots=True)
class TokenPayload:
    """Claims carried by a signed session token.

    Immutable: a change in identity state is expressed by minting a new
    token, never by editing this one.
    """

    email: str
    display_name: str
    role: Role
    identity_id: str | None = None  # absent until the identity is durable
    tenant_id: str | None = None
    tenant_slug: str | None = None
    email_domain: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.identity_id is None

    @property
    def is_candidate(self) -> bool:
        return self.role == Role.CANDIDATE
