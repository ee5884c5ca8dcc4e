"""Signed session tokens (HS256 JWT) and the identity -> claims projection."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import jwt
import structlog

from campusgate.config.settings import get_settings
from campusgate.exceptions import InvalidToken
from campusgate.models.domain import Role, TokenPayload

if TYPE_CHECKING:
    from campusgate.models.database import Identity
    from campusgate.models.domain import ProviderProfile

logger = structlog.get_logger(__name__)

_ALGORITHM = "HS256"
_ISSUER = "campusgate"

# claim name -> TokenPayload field, for the optional claims
_OPTIONAL_CLAIMS = {
    "sub": "identity_id",
    "tenant_id": "tenant_id",
    "tenant_slug": "tenant_slug",
    "email_domain": "email_domain",
}


def project_identity_into_token(identity: Identity) -> TokenPayload:
    """Project a durable identity into token claims. Bound tenant fields travel together."""
    bound = identity.tenant_id is not None
    return TokenPayload(
        identity_id=identity.id,
        email=identity.email,
        display_name=identity.display_name,
        role=Role(identity.role),
        tenant_id=identity.tenant_id if bound else None,
        tenant_slug=identity.tenant_slug if bound else None,
        email_domain=identity.email_domain if bound else None,
    )


def project_profile_into_token(profile: ProviderProfile, role: Role) -> TokenPayload:
    """Claims for an identity that has no durable record yet (mid-onboarding)."""
    return TokenPayload(
        email=profile.email.strip().lower(),
        display_name=profile.display_name,
        role=role,
    )


class SessionTokenCodec:
    """Mints and verifies tamper-evident session tokens with a fixed TTL."""

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._secret = secret_key
        self._max_age = max_age

    @property
    def max_age(self) -> int:
        return self._max_age

    def mint(self, payload: TokenPayload) -> str:
        now = datetime.now(UTC)
        claims: dict[str, Any] = {
            "iss": _ISSUER,
            "iat": now,
            "exp": now + timedelta(seconds=self._max_age),
            "email": payload.email,
            "name": payload.display_name,
            "role": payload.role.value,
        }
        for claim, attr in _OPTIONAL_CLAIMS.items():
            value = getattr(payload, attr)
            if value is not None:
                claims[claim] = value
        return jwt.encode(claims, self._secret, algorithm=_ALGORITHM)

    def decode(self, token: str) -> TokenPayload:
        """Verify signature, issuer and expiry. Raises InvalidToken on any failure."""
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=_ISSUER,
                options={"require": ["exp", "iat", "iss"]},
            )
        except jwt.PyJWTError as exc:
            logger.debug("session_token_rejected", error=str(exc))
            raise InvalidToken(str(exc)) from exc

        email = claims.get("email")
        if not isinstance(email, str) or not email:
            msg = "Token is missing the email claim"
            raise InvalidToken(msg)
        try:
            role = Role(claims.get("role"))
        except ValueError as exc:
            raise InvalidToken(f"Unknown role claim: {claims.get('role')!r}") from exc

        optional = {
            attr: str(claims[claim])
            for claim, attr in _OPTIONAL_CLAIMS.items()
            if claims.get(claim)
        }
        return TokenPayload(
            email=email,
            display_name=str(claims.get("name", "")),
            role=role,
            **optional,
        )


@lru_cache
def get_token_codec() -> SessionTokenCodec:
    """Return the process-wide codec built from settings."""
    settings = get_settings()
    return SessionTokenCodec(settings.secret_key, max_age=settings.session_max_age)
