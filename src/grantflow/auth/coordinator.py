"""Authorization handshake coordination.

The coordinator opens an authorization surface and then waits on two
independent observers: the message channel (the relay reporting an outcome)
and a liveness poll (the user closing the surface). Whichever produces a
decisive signal first settles the session; the other is disarmed.

All observers run on one event loop. ``HandshakeSession.transition`` holds no
await between its check and its write, which is what makes settlement
exactly-once.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime
from collections.abc import Callable
from typing import TYPE_CHECKING

from grantflow.auth.errors import (
    HandshakeError,
    HandshakeTimeout,
    IssuerUnavailable,
    ProviderDenied,
    SurfaceBlocked,
    UserCancelled,
)
from grantflow.auth.types import (
    AuthorizationRequest,
    Credential,
    Envelope,
    ErrorMessage,
    HandshakeSession,
    HandshakeStatus,
    MalformedMessage,
    parse_message,
)

if TYPE_CHECKING:
    from grantflow.auth.channel import MessageChannel
    from grantflow.auth.issuer import AuthorizationUrlIssuer
    from grantflow.auth.surface import SurfaceOpener

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
MALFORMED_RESPONSE_MESSAGE = "Malformed authorization response"

Settle = Callable[..., None]


class HandshakeCoordinator:
    """Run one authorization handshake at a time.

    Args:
        issuer: Supplies the authorization URL for the requested scopes.
        opener: Opens the authorization surface.
        channel: Channel the token relay publishes outcomes to.
        origin: Our own origin. Messages from any other origin are dropped.
        poll_interval: Seconds between surface liveness checks.
        timeout: Optional limit in seconds on how long a session may stay
            pending. None waits for as long as the surface stays open.
    """

    def __init__(
        self,
        issuer: AuthorizationUrlIssuer,
        opener: SurfaceOpener,
        channel: MessageChannel,
        *,
        origin: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        self._issuer = issuer
        self._opener = opener
        self._channel = channel
        self._origin = origin
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._session: HandshakeSession | None = None
        self._busy = False

    @property
    def session(self) -> HandshakeSession | None:
        """The in-flight session, if any."""
        return self._session

    async def initiate(self, request: AuthorizationRequest) -> Credential:
        """Run a handshake for ``request`` and return the granted credential.

        Raises:
            IssuerUnavailable: The authorization URL could not be obtained.
            SurfaceBlocked: The authorization surface could not be opened.
            ProviderDenied: The relay reported an error.
            UserCancelled: The surface was closed before completion.
            HandshakeTimeout: ``timeout`` elapsed with no decisive signal.
        """
        if self._busy:
            raise RuntimeError("A handshake is already in progress")
        self._busy = True
        try:
            return await self._run(request)
        finally:
            self._busy = False

    async def _run(self, request: AuthorizationRequest) -> Credential:
        scopes = sorted(request.scopes)
        try:
            url = await self._issuer.get_authorization_url(scopes)
        except IssuerUnavailable:
            raise
        except Exception as e:
            raise IssuerUnavailable(f"Failed to get authorization URL: {e}") from e

        try:
            surface = await self._opener.open(url)
        except SurfaceBlocked:
            raise
        except Exception as e:
            raise SurfaceBlocked(f"Authorization window could not be opened: {e}") from e
        if surface is None:
            raise SurfaceBlocked()

        session = HandshakeSession(surface=surface)
        self._session = session
        logger.info("Authorization started for scopes: %s", " ".join(scopes))
        try:
            return await self._await_outcome(session)
        finally:
            self._session = None

    async def _await_outcome(self, session: HandshakeSession) -> Credential:
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[Credential] = loop.create_future()

        def settle(
            status: HandshakeStatus,
            credential: Credential | None = None,
            error: HandshakeError | None = None,
        ) -> None:
            if not session.transition(status):
                return
            if error is not None:
                outcome.set_exception(error)
            else:
                outcome.set_result(credential)

        def on_message(envelope: Envelope) -> None:
            if envelope.origin != self._origin:
                logger.warning(
                    "Dropped authorization message from untrusted origin %r",
                    envelope.origin,
                )
                return
            if not session.is_pending:
                return

            received_at = datetime.now(UTC)
            try:
                message = parse_message(envelope.data)
            except MalformedMessage as e:
                logger.warning("Rejecting authorization response: %s", e)
                settle(
                    HandshakeStatus.REJECTED,
                    error=ProviderDenied(MALFORMED_RESPONSE_MESSAGE),
                )
                return

            if isinstance(message, ErrorMessage):
                settle(HandshakeStatus.REJECTED, error=ProviderDenied(message.error))
            else:
                settle(
                    HandshakeStatus.RESOLVED,
                    credential=message.tokens.to_credential(issued_at=received_at),
                )

        subscription = self._channel.subscribe(on_message)
        poller = asyncio.create_task(self._poll_liveness(session, settle))
        try:
            async with asyncio.timeout(self._timeout):
                credential = await asyncio.shield(outcome)
            logger.info("Authorization granted")
            return credential
        except UserCancelled:
            logger.info("Authorization cancelled by user")
            raise
        except ProviderDenied as e:
            logger.warning("Authorization denied: %s", e.message)
            raise
        except TimeoutError:
            if session.transition(HandshakeStatus.REJECTED):
                logger.warning("Authorization timed out after %ss", self._timeout)
                raise HandshakeTimeout(self._timeout or 0) from None
            # A signal landed in the same loop iteration as the deadline
            return outcome.result()
        except asyncio.CancelledError:
            session.transition(HandshakeStatus.REJECTED)
            raise
        finally:
            subscription.unsubscribe()
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller
            # Releases the handle even when the user already closed the window
            try:
                await session.surface.close()
            except Exception as e:
                logger.warning("Failed to close authorization surface: %s", e)

    async def _poll_liveness(self, session: HandshakeSession, settle: Settle) -> None:
        while session.is_pending:
            await asyncio.sleep(self._poll_interval)
            if not session.is_pending:
                return
            try:
                closed = session.surface.closed
            except Exception as e:
                logger.warning("Authorization surface stopped responding: %s", e)
                closed = True
            if closed:
                settle(HandshakeStatus.REJECTED, error=UserCancelled())
                return
