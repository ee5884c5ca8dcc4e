"""Google OAuth 2.0 authorization code flow with PKCE."""

from __future__ import annotations

import base64
import hashlib
import secrets
import urllib.parse
from typing import Any

import httpx
import structlog

from campusgate.exceptions import IdentityProviderError
from campusgate.models.domain import ProviderProfile

logger = structlog.get_logger(__name__)

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"  # nosec B105
USERINFO_ENDPOINT = "https://openidconnect.googleapis.com/v1/userinfo"


def generate_pkce_pair() -> tuple[str, str]:
    """Generate PKCE code_verifier and S256 code_challenge (RFC 7636).

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    code_verifier = secrets.token_urlsafe(32)
    code_challenge = (
        base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
        .decode()
        .rstrip("=")
    )
    return code_verifier, code_challenge


class GoogleOAuthClient:
    """Talks to Google's authorization, token and userinfo endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._transport = transport
        self._timeout = timeout

    def authorization_url(self, state: str, code_challenge: str) -> str:
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "scope": "openid email profile",
            "redirect_uri": self._redirect_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "prompt": "select_account",
        }
        return f"{AUTHORIZATION_ENDPOINT}?{urllib.parse.urlencode(params)}"

    async def fetch_profile(self, code: str, code_verifier: str) -> ProviderProfile:
        """Exchange an authorization code and return the verified profile.

        Raises IdentityProviderError when the exchange fails or the provider
        does not vouch for the email address.
        """
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                token_resp = await client.post(
                    TOKEN_ENDPOINT,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "code_verifier": code_verifier,
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "redirect_uri": self._redirect_uri,
                    },
                )
                token_resp.raise_for_status()
                access_token = token_resp.json()["access_token"]

                info_resp = await client.get(
                    USERINFO_ENDPOINT,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                info_resp.raise_for_status()
                info: dict[str, Any] = info_resp.json()
            except (httpx.HTTPError, KeyError, ValueError) as exc:
                logger.warning("oauth_exchange_failed", error=str(exc))
                raise IdentityProviderError(f"Google token exchange failed: {exc}") from exc

        email = str(info.get("email", "")).strip().lower()
        if not email or not info.get("email_verified", False):
            logger.warning("oauth_email_unverified", email=email)
            msg = "Google account has no verified email address"
            raise IdentityProviderError(msg)
        return ProviderProfile(email=email, display_name=str(info.get("name", "")))
