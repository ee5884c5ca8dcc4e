"""Identity resolution: classify a provider profile and find its durable record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from campusgate.exceptions import StorageError
from campusgate.models.database import Identity
from campusgate.models.domain import Role

if TYPE_CHECKING:
    from campusgate.models.domain import ProviderProfile, RoleClassificationConfig
    from campusgate.storage.repositories.protocols import IdentityStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving a provider profile.

    ``identity`` is None for a first-time candidate: the record is only
    created once a tenant bind has been validated.
    """

    role: Role
    identity: Identity | None

    @property
    def is_pending(self) -> bool:
        return self.identity is None


def classify_role(email: str, config: RoleClassificationConfig) -> Role:
    """Decide the role for an email. First matching rule wins."""
    email = email.strip().lower()
    suffix = config.staff_domain_suffix
    if suffix and email.endswith(f"@{suffix}"):
        return Role.STAFF
    if email in config.admin_emails:
        return Role.ADMIN
    if email in config.staff_emails:
        return Role.STAFF
    return Role.CANDIDATE


class IdentityResolver:
    def __init__(self, identities: IdentityStore) -> None:
        self._identities = identities

    async def resolve(
        self, profile: ProviderProfile, config: RoleClassificationConfig
    ) -> Resolution:
        role = classify_role(profile.email, config)
        existing = await self._identities.get_by_email(profile.email)

        if existing is not None:
            await self._identities.touch_last_authenticated(existing.id)
            logger.info("identity_resolved", identity_id=existing.id, role=existing.role)
            return Resolution(role=Role(existing.role), identity=existing)

        if role == Role.CANDIDATE:
            logger.info("identity_pending", role=role.value)
            return Resolution(role=role, identity=None)

        # Organisational accounts are trusted without tenant gating.
        created = await self._identities.insert_if_absent(
            Identity(email=profile.email, display_name=profile.display_name, role=role.value)
        )
        if created is None:
            created = await self._identities.get_by_email(profile.email)
            if created is None:
                msg = f"Identity insert for {profile.email} conflicted but no row exists"
                raise StorageError(msg)
        return Resolution(role=Role(created.role), identity=created)
