"""Identity repository, PostgreSQL-backed with an in-memory fallback.

Binding columns are only ever written through ``bind_if_unbound`` and rows
are only ever deleted through ``delete_if_unbound``. Both are single
conditional statements, so two concurrent callers cannot both observe
"unbound" and both win.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError

from campusgate.exceptions import StorageError
from campusgate.models.database import Identity, _utc_now

logger = structlog.get_logger(__name__)


class DatabaseIdentityRepository:
    """PostgreSQL-backed identity store."""

    def __init__(self, engine: Any) -> None:
        self._engine = engine

    async def get_by_id(self, identity_id: str) -> Identity | None:
        from sqlmodel import col, select
        from sqlmodel.ext.asyncio.session import AsyncSession

        async with AsyncSession(self._engine) as session:
            stmt = select(Identity).where(col(Identity.id) == identity_id)
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_by_email(self, email: str) -> Identity | None:
        from sqlmodel import col, select
        from sqlmodel.ext.asyncio.session import AsyncSession

        async with AsyncSession(self._engine) as session:
            stmt = select(Identity).where(col(Identity.email) == email.strip().lower())
            result = await session.execute(stmt)
            return result.scalars().first()

    async def insert_if_absent(self, identity: Identity) -> Identity | None:
        """Insert a new identity; return None if the email is already taken."""
        from sqlmodel.ext.asyncio.session import AsyncSession

        email = identity.email = identity.email.strip().lower()
        async with AsyncSession(self._engine) as session:
            session.add(identity)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                # Only a taken email is a lost race; any other violation is a bad row.
                if await self.get_by_email(email) is None:
                    logger.error("identity_insert_rejected", email=email, error=str(exc))
                    msg = f"Identity insert for {email} violated a constraint"
                    raise StorageError(msg) from exc
                logger.info("identity_insert_conflict", email=email)
                return None
            await session.refresh(identity)
            logger.info(
                "identity_created",
                identity_id=identity.id,
                role=identity.role,
                tenant_id=identity.tenant_id,
            )
            return identity

    async def touch_last_authenticated(self, identity_id: str) -> None:
        from sqlalchemy import update
        from sqlmodel import col
        from sqlmodel.ext.asyncio.session import AsyncSession

        async with AsyncSession(self._engine) as session:
            stmt = (
                update(Identity)
                .where(col(Identity.id) == identity_id)
                .values(last_authenticated_at=_utc_now())
            )
            await session.execute(stmt)
            await session.commit()

    async def update_display_name(self, identity_id: str, display_name: str) -> None:
        from sqlalchemy import update
        from sqlmodel import col
        from sqlmodel.ext.asyncio.session import AsyncSession

        async with AsyncSession(self._engine) as session:
            stmt = (
                update(Identity)
                .where(col(Identity.id) == identity_id)
                .values(display_name=display_name)
            )
            await session.execute(stmt)
            await session.commit()

    async def bind_if_unbound(
        self,
        identity_id: str,
        *,
        tenant_id: str,
        tenant_slug: str,
        email_domain: str,
    ) -> bool:
        """Set all binding columns only if the identity is currently unbound."""
        from sqlalchemy import update
        from sqlmodel import col
        from sqlmodel.ext.asyncio.session import AsyncSession

        async with AsyncSession(self._engine) as session:
            stmt = (
                update(Identity)
                .where(col(Identity.id) == identity_id, col(Identity.tenant_id).is_(None))
                .values(tenant_id=tenant_id, tenant_slug=tenant_slug, email_domain=email_domain)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def delete_if_unbound(self, identity_id: str) -> bool:
        from sqlalchemy import delete
        from sqlmodel import col
        from sqlmodel.ext.asyncio.session import AsyncSession

        async with AsyncSession(self._engine) as session:
            stmt = delete(Identity).where(
                col(Identity.id) == identity_id, col(Identity.tenant_id).is_(None)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1


def _clone(identity: Identity) -> Identity:
    return Identity(**identity.model_dump())


class InMemoryIdentityRepository:
    """In-memory fallback for dev/testing without a database.

    Every check-and-set below runs without awaiting in between, which makes
    it atomic with respect to other coroutines on the event loop.
    """

    def __init__(self) -> None:
        self._identities: dict[str, Identity] = {}

    async def get_by_id(self, identity_id: str) -> Identity | None:
        stored = self._identities.get(identity_id)
        return _clone(stored) if stored else None

    async def get_by_email(self, email: str) -> Identity | None:
        email = email.strip().lower()
        stored = next((i for i in self._identities.values() if i.email == email), None)
        return _clone(stored) if stored else None

    async def insert_if_absent(self, identity: Identity) -> Identity | None:
        identity.email = identity.email.strip().lower()
        if any(i.email == identity.email for i in self._identities.values()):
            logger.info("identity_insert_conflict", email=identity.email)
            return None
        self._identities[identity.id] = _clone(identity)
        logger.info(
            "identity_created",
            identity_id=identity.id,
            role=identity.role,
            tenant_id=identity.tenant_id,
        )
        return identity

    async def touch_last_authenticated(self, identity_id: str) -> None:
        stored = self._identities.get(identity_id)
        if stored:
            stored.last_authenticated_at = _utc_now()

    async def update_display_name(self, identity_id: str, display_name: str) -> None:
        stored = self._identities.get(identity_id)
        if stored:
            stored.display_name = display_name

    async def bind_if_unbound(
        self,
        identity_id: str,
        *,
        tenant_id: str,
        tenant_slug: str,
        email_domain: str,
    ) -> bool:
        stored = self._identities.get(identity_id)
        if stored is None or stored.tenant_id is not None:
            return False
        stored.tenant_id = tenant_id
        stored.tenant_slug = tenant_slug
        stored.email_domain = email_domain
        return True

    async def delete_if_unbound(self, identity_id: str) -> bool:
        stored = self._identities.get(identity_id)
        if stored is None or stored.tenant_id is not None:
            return False
        del self._identities[identity_id]
        return True
