"""
OAuth identity provider integration.

The provider runs the out-of-band verification and hands back an
:class:`ExternalIdentity`; the rest of the service trusts that tuple as-is.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlencode

import httpx

from heirloom.config import Settings
from heirloom.errors import AuthenticationError
from heirloom.users import ExternalIdentity

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class IdentityProvider(Protocol):
    """Interface for the login flow the HTTP surface needs."""

    name: str

    def authorization_url(self, state: str | None = None) -> str:
        ...

    def exchange_code(self, code: str) -> ExternalIdentity:
        ...


class GoogleIdentityProvider:
    """Google OAuth 2.0 authorization-code flow (scopes: openid profile email)."""

    name = "google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleIdentityProvider":
        missing = [
            name
            for name in ("google_client_id", "google_client_secret", "google_callback_url")
            if not getattr(settings, name)
        ]
        if missing:
            raise RuntimeError(
                "Google OAuth configuration is incomplete: missing "
                + ", ".join(m.upper() for m in missing)
            )
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            callback_url=settings.google_callback_url,
        )

    def authorization_url(self, state: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": "openid profile email",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> ExternalIdentity:
        with httpx.Client(timeout=self.timeout) as client:
            token_response = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.callback_url,
                    "grant_type": "authorization_code",
                },
            )
            if token_response.status_code != 200:
                logger.warning(
                    "Google token exchange failed: %s", token_response.status_code
                )
                raise AuthenticationError("Google sign-in failed")
            access_token = token_response.json().get("access_token")
            userinfo_response = client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if userinfo_response.status_code != 200:
                logger.warning(
                    "Google userinfo lookup failed: %s", userinfo_response.status_code
                )
                raise AuthenticationError("Google sign-in failed")
            profile = userinfo_response.json()

        if not profile.get("sub") or not profile.get("email"):
            raise AuthenticationError("Google profile is missing id or email")
        return ExternalIdentity(
            id=profile["sub"],
            email=profile["email"],
            name=profile.get("name") or profile["email"],
            picture=profile.get("picture"),
            provider=self.name,
        )
