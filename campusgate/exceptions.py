"""Exception hierarchy for campusgate."""

from __future__ import annotations


class CampusGateError(Exception):
    """Base exception for all campusgate errors."""


class TenantNotFound(CampusGateError):  # noqa: N818
    """Raised when a tenant slug or id does not resolve to an active tenant."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Tenant not found: {slug}")
        self.slug = slug


class DomainMismatch(CampusGateError):  # noqa: N818
    """Raised when an email domain differs from the tenant's required domain."""

    def __init__(self, email: str, required_domain: str, tenant_name: str) -> None:
        super().__init__(
            f"Only @{required_domain} emails are allowed for {tenant_name}. "
            "Please use your college email address."
        )
        self.email = email
        self.required_domain = required_domain
        self.tenant_name = tenant_name


class TenantConflict(CampusGateError):  # noqa: N818
    """Raised when an identity is already bound to a different tenant."""

    def __init__(self, existing_slug: str, requested_slug: str) -> None:
        super().__init__(
            f"You are already logged in with {existing_slug}. "
            "Please logout first to access this college portal."
        )
        self.existing_slug = existing_slug
        self.requested_slug = requested_slug


class IdentityNotFound(CampusGateError):  # noqa: N818
    """Raised when an identity record disappeared under an operation."""


class UnauthenticatedAccess(CampusGateError):  # noqa: N818
    """Raised when a protected operation runs without a valid session."""


class InvalidToken(CampusGateError):  # noqa: N818
    """Raised when a session token fails signature, expiry or shape checks."""


class IdentityProviderError(CampusGateError):
    """Raised when the external OAuth provider round trip fails."""


class StorageError(CampusGateError):
    """Raised when storage operations fail."""


class ConfigError(CampusGateError):
    """Raised when configuration is invalid."""
