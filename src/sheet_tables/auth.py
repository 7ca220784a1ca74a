"""Access tokens for the Sheets API.

Two grants are supported:

    OAuthCredentials           refresh_token grant for an OAuth client
    ServiceAccountCredentials  JWT bearer grant signed with the account's key

Both exchange against the token endpoint over httpx and cache the access
token until shortly before it expires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol

import httpx
from google.auth import crypt, jwt

from sheet_tables.config import AuthConfig, OAuthConfig, ServiceAccountConfig
from sheet_tables.errors import AuthenticationError

logger = logging.getLogger(__name__)

# Refresh this many seconds before the token's stated expiry
EXPIRY_MARGIN = 300
DEFAULT_EXPIRES_IN = 3600
ASSERTION_LIFETIME = 3600

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class Credentials(Protocol):
    """Source of authorization headers for transport requests."""

    async def headers(self, client: httpx.AsyncClient) -> dict[str, str]:
        ...


class _TokenCredentials:
    """Token cache shared by the grant implementations."""

    def __init__(self, token_uri: str) -> None:
        self.token_uri = token_uri
        self.access_token: str | None = None
        self.expires_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def expired(self) -> bool:
        return self.access_token is None or time.time() >= self.expires_at

    def _grant(self) -> dict[str, str]:
        raise NotImplementedError

    async def refresh(self, client: httpx.AsyncClient) -> None:
        """Exchange the grant for a new access token.

        Raises:
            AuthenticationError: If the token endpoint rejects the grant or
                cannot be reached.
        """
        try:
            response = await client.post(self.token_uri, data=self._grant())
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Network error during token refresh: {e}") from e

        if response.status_code != 200:
            try:
                detail = response.json().get("error_description") or response.text
            except ValueError:
                detail = response.text
            raise AuthenticationError(
                f"Token refresh failed: {detail}", status_code=response.status_code
            )

        data: dict[str, Any] = response.json()
        token = data.get("access_token")
        if not token:
            raise AuthenticationError("Token response did not contain an access token")
        expires_in = int(data.get("expires_in", DEFAULT_EXPIRES_IN))
        self.access_token = token
        self.expires_at = time.time() + max(0, expires_in - EXPIRY_MARGIN)
        logger.info("Access token refreshed, valid for %ss", expires_in)

    async def headers(self, client: httpx.AsyncClient) -> dict[str, str]:
        async with self._lock:
            if self.expired:
                await self.refresh(client)
        return {"Authorization": f"Bearer {self.access_token}"}


class OAuthCredentials(_TokenCredentials):
    """OAuth client credentials with a refresh token."""

    def __init__(self, config: OAuthConfig) -> None:
        super().__init__(config.token_uri)
        self.config = config

    def _grant(self) -> dict[str, str]:
        grant = {
            "grant_type": "refresh_token",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": self.config.refresh_token,
        }
        if self.config.redirect_uri:
            grant["redirect_uri"] = self.config.redirect_uri
        return grant


class ServiceAccountCredentials(_TokenCredentials):
    """Service-account credentials using a signed JWT assertion."""

    def __init__(self, config: ServiceAccountConfig) -> None:
        super().__init__(config.token_uri)
        self.config = config
        try:
            self._signer = crypt.RSASigner.from_service_account_info(config.info)
        except ValueError as e:
            raise AuthenticationError(f"Invalid service account key: {e}") from e

    def assertion(self, now: float | None = None) -> str:
        """Build the signed JWT exchanged for an access token."""
        issued = int(time.time() if now is None else now)
        payload = {
            "iss": self.config.client_email,
            "scope": " ".join(self.config.scopes),
            "aud": self.token_uri,
            "iat": issued,
            "exp": issued + ASSERTION_LIFETIME,
        }
        return jwt.encode(self._signer, payload).decode("ascii")

    def _grant(self) -> dict[str, str]:
        return {"grant_type": JWT_BEARER_GRANT, "assertion": self.assertion()}


def credentials_for(config: AuthConfig) -> OAuthCredentials | ServiceAccountCredentials:
    """Create the credentials object matching a configuration."""
    if isinstance(config, OAuthConfig):
        return OAuthCredentials(config)
    return ServiceAccountCredentials(config)


async def authorize(
    config: AuthConfig, client: httpx.AsyncClient
) -> OAuthCredentials | ServiceAccountCredentials:
    """Create credentials and fetch the first access token.

    Raises:
        AuthenticationError: If the credentials are rejected.
    """
    credentials = credentials_for(config)
    await credentials.refresh(client)
    return credentials
