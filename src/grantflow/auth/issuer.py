"""Authorization URL issuers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlencode

import httpx

from grantflow.auth.errors import IssuerUnavailable

if TYPE_CHECKING:
    from grantflow.config.models import ProviderConfig

logger = logging.getLogger(__name__)

PLATFORM_URL_PATH = "/api/auth/platform-oauth-url"


class AuthorizationUrlIssuer(Protocol):
    async def get_authorization_url(self, scopes: list[str]) -> str: ...


class HttpUrlIssuer:
    """Ask a platform server for the authorization URL.

    The server owns the client credentials and the redirect target; we only
    send the scopes.
    """

    def __init__(
        self,
        base_url: str,
        *,
        path: str = PLATFORM_URL_PATH,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._url = base_url.rstrip("/") + path
        self._client = client
        self._timeout = timeout

    async def get_authorization_url(self, scopes: list[str]) -> str:
        try:
            if self._client is not None:
                response = await self._client.post(self._url, json={"scopes": scopes})
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json={"scopes": scopes})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Authorization URL request failed: %s", e)
            raise IssuerUnavailable("Failed to get authorization URL from platform") from e

        auth_url = data.get("authUrl") if isinstance(data, dict) else None
        if not isinstance(auth_url, str) or not auth_url:
            raise IssuerUnavailable("Platform response did not include authUrl")
        return auth_url


class LocalUrlIssuer:
    """Build the provider authorization URL locally.

    Used with the loopback ``CallbackRelay``: ``redirect_uri`` and ``state``
    come from the relay so the callback can be matched to this attempt.
    """

    def __init__(self, provider: ProviderConfig, redirect_uri: str, state: str) -> None:
        self._provider = provider
        self._redirect_uri = redirect_uri
        self._state = state

    async def get_authorization_url(self, scopes: list[str]) -> str:
        client_id = self._provider.client_id
        if not client_id:
            raise IssuerUnavailable(
                f"No client_id configured for provider {self._provider.name!r}"
            )

        params = {
            "client_id": client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": self._state,
        }
        return f"{self._provider.auth_url}?{urlencode(params)}"
