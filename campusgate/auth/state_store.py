"""Short-lived OAuth authorization state (CSRF state + PKCE verifier)."""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PendingAuthorization:
    """What the sign-in request knew when it sent the user to the provider."""

    code_verifier: str
    tenant_slug: str | None = None
    redirect: str | None = None


class InMemoryStateStore:
    """Stores pending authorizations keyed by OAuth ``state`` with TTL expiry.

    Entries are one-time-use: ``pop`` retrieves and deletes. An abandoned
    sign-in simply expires; nothing needs cleaning up explicitly.
    """

    def __init__(self) -> None:
        # state -> (entry, expires_at)
        self._store: dict[str, tuple[PendingAuthorization, float]] = {}

    def set(self, state: str, entry: PendingAuthorization, ttl_seconds: int = 600) -> None:
        self._cleanup()
        self._store[state] = (entry, time.time() + ttl_seconds)

    def pop(self, state: str) -> PendingAuthorization | None:
        """Retrieve and delete an entry. Returns None if missing or expired."""
        self._cleanup()
        item = self._store.pop(state, None)
        if item is None:
            return None
        entry, expires_at = item
        if time.time() > expires_at:
            return None
        return entry

    def _cleanup(self) -> None:
        now = time.time()
        expired = [k for k, (_, exp) in self._store.items() if now > exp]
        for k in expired:
            del self._store[k]
