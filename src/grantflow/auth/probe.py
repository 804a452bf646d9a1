"""Credential cache probe.

Probing is a best-effort shortcut: any failure reads as "no cached
credential" and the caller falls through to a full handshake.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from pydantic import ValidationError

from grantflow.auth.storage import DEFAULT_KEY
from grantflow.auth.types import Credential, SessionStatus

if TYPE_CHECKING:
    from grantflow.auth.storage import CredentialStore

logger = logging.getLogger(__name__)

SESSION_STATUS_PATH = "/api/auth/check-google-tokens"


class SessionStatusSource(Protocol):
    async def fetch_status(self) -> Any:
        """Return a ``{hasValidTokens, tokens?}`` mapping."""
        ...


class HttpSessionStatus:
    """Ask a platform server whether it already holds valid tokens."""

    def __init__(
        self,
        base_url: str,
        *,
        path: str = SESSION_STATUS_PATH,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = base_url.rstrip("/") + path
        self._client = client
        self._timeout = timeout

    async def fetch_status(self) -> Any:
        if self._client is not None:
            response = await self._client.get(self._url)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url)
        response.raise_for_status()
        return response.json()


class StoredSessionStatus:
    """Report on the credential held in the local store."""

    def __init__(self, store: CredentialStore, key: str = DEFAULT_KEY) -> None:
        self._store = store
        self._key = key

    async def fetch_status(self) -> Any:
        credential = self._store.load(self._key)
        now = datetime.now(UTC)
        if credential is None or credential.is_expired(now):
            return {"hasValidTokens": False}
        return {"hasValidTokens": True, "tokens": credential.to_wire(now)}


class CredentialCacheProbe:
    def __init__(self, source: SessionStatusSource) -> None:
        self._source = source

    async def probe(self) -> Credential | None:
        """Return a valid cached credential, or None.

        Makes exactly one query and never raises.
        """
        try:
            raw = await self._source.fetch_status()
        except Exception as e:
            logger.debug("Credential probe failed: %s", e)
            return None

        try:
            status = SessionStatus.model_validate(raw)
        except ValidationError as e:
            logger.debug("Credential probe returned malformed status: %s", e)
            return None

        if not status.has_valid_tokens or status.tokens is None:
            return None
        logger.debug("Found cached credential")
        return status.tokens.to_credential(issued_at=datetime.now(UTC))
