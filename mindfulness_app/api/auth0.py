"""
Auth0 authorization-code flow: building the authorize URL, exchanging the
code for tokens and fetching the user profile.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from mindfulness_app.database.config.config import settings
from mindfulness_app.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/auth/callback"
SCOPE = "openid profile email"


class TokenExchangeError(UpstreamError):
    """Auth0 refused the authorization code."""


class UserProfileError(UpstreamError):
    """Auth0 returned tokens but no usable profile."""


class Auth0Client:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 10.0):
        self.transport = transport
        self.timeout = timeout

    def _require_config(self) -> None:
        missing = [
            name
            for name in ("AUTH0_ISSUER_BASE_URL", "AUTH0_CLIENT_ID", "AUTH0_CLIENT_SECRET", "AUTH0_BASE_URL")
            if not getattr(settings, name)
        ]
        if missing:
            raise ConfigurationError(f"Auth0 is not configured: missing {', '.join(missing)}")

    @property
    def issuer(self) -> str:
        return settings.AUTH0_ISSUER_BASE_URL.rstrip("/")

    @property
    def redirect_uri(self) -> str:
        return f"{settings.AUTH0_BASE_URL.rstrip('/')}{CALLBACK_PATH}"

    def authorize_url(self, state: str) -> str:
        self._require_config()
        query = urlencode(
            {
                "client_id": settings.AUTH0_CLIENT_ID,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": SCOPE,
                "state": state,
            }
        )
        return f"{self.issuer}/authorize?{query}"

    async def fetch_user(self, code: str) -> dict:
        """
        Exchange an authorization code and return the Auth0 user profile.

        Raises
        ------
        TokenExchangeError
            If `/oauth/token` answers with an error.
        UserProfileError
            If `/userinfo` answers with an error.
        """
        self._require_config()
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            token_response = await client.post(
                f"{self.issuer}/oauth/token",
                json={
                    "grant_type": "authorization_code",
                    "client_id": settings.AUTH0_CLIENT_ID,
                    "client_secret": settings.AUTH0_CLIENT_SECRET,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
            )
            if token_response.is_error:
                logger.error("Token exchange failed: %s %s", token_response.status_code, token_response.text)
                raise TokenExchangeError("Token exchange failed", status_code=token_response.status_code)
            access_token = token_response.json().get("access_token")

            user_response = await client.get(
                f"{self.issuer}/userinfo", headers={"Authorization": f"Bearer {access_token}"}
            )
            if user_response.is_error:
                logger.error("User profile fetch failed: %s %s", user_response.status_code, user_response.text)
                raise UserProfileError("User profile fetch failed", status_code=user_response.status_code)
            profile = user_response.json()

        if not profile.get("sub"):
            raise UserProfileError("User profile has no subject")
        return profile


def get_auth0_client() -> Auth0Client:
    return Auth0Client()
