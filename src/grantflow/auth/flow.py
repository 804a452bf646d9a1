"""Caller-level entry point: reuse a cached credential or run a handshake."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING

from grantflow.auth.storage import DEFAULT_KEY

if TYPE_CHECKING:
    from grantflow.auth.coordinator import HandshakeCoordinator
    from grantflow.auth.probe import CredentialCacheProbe
    from grantflow.auth.storage import CredentialStore
    from grantflow.auth.types import AuthorizationRequest, Credential

logger = logging.getLogger(__name__)

CoordinatorFactory = Callable[[], AbstractAsyncContextManager["HandshakeCoordinator"]]


async def obtain_credential(
    request: AuthorizationRequest,
    probe: CredentialCacheProbe,
    coordinator: HandshakeCoordinator,
    *,
    store: CredentialStore | None = None,
    store_key: str = DEFAULT_KEY,
) -> Credential:
    """Return a usable credential for ``request``.

    A cached credential covering the requested scopes short-circuits the
    handshake entirely: no surface is opened. Otherwise the handshake result
    is saved to ``store`` (if given). Handshake errors propagate unchanged.
    """

    @contextlib.asynccontextmanager
    async def ready() -> AsyncIterator[HandshakeCoordinator]:
        yield coordinator

    return await obtain_credential_with(
        request, probe, ready, store=store, store_key=store_key
    )


async def obtain_credential_with(
    request: AuthorizationRequest,
    probe: CredentialCacheProbe,
    open_coordinator: CoordinatorFactory,
    *,
    store: CredentialStore | None = None,
    store_key: str = DEFAULT_KEY,
) -> Credential:
    """Like :func:`obtain_credential`, but build the coordinator on a cache miss.

    ``open_coordinator`` is entered only when a handshake is needed, so
    whatever it sets up (a callback server, a browser) is skipped on a hit.
    """
    cached = await probe.probe()
    if cached is not None:
        if request.scopes <= cached.scope:
            logger.info("Using cached credential")
            return cached
        logger.info(
            "Cached credential lacks scopes: %s",
            " ".join(sorted(request.scopes - cached.scope)),
        )

    async with open_coordinator() as coordinator:
        credential = await coordinator.initiate(request)
    if store is not None:
        store.save(store_key, credential)
    return credential
