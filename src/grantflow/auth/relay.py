"""Loopback token relay.

Receives the provider redirect on a local HTTP server, exchanges the
authorization code for tokens and publishes the outcome on the handshake
channel under the relay's own origin.

The HTTP server runs on a background thread. It never touches handshake
state directly: everything it publishes is handed to the event loop.
"""

from __future__ import annotations

import asyncio
import html
import logging
import secrets
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlparse

import httpx

if TYPE_CHECKING:
    from grantflow.auth.channel import LocalChannel
    from grantflow.config.models import ProviderConfig

logger = logging.getLogger(__name__)

EXCHANGE_TIMEOUT_SECONDS = 15.0
CALLBACK_FAILED_MESSAGE = "OAuth callback failed"

RESULT_HTML = """\
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{title}</title>
</head>
<body>
  <p>{body}</p>
</body>
</html>"""


def _render(title: str, body: str) -> bytes:
    return RESULT_HTML.format(title=html.escape(title), body=html.escape(body)).encode()


class CallbackRelay:
    """Local redirect target for one handshake attempt.

    Use as an async context manager; the server listens between enter and
    exit. ``state`` is generated per relay and must round-trip through the
    provider unchanged.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        channel: LocalChannel,
        *,
        host: str = "127.0.0.1",
        port: int = 1455,
        callback_path: str = "/oauth/callback",
        client: httpx.AsyncClient | None = None,
        exchange_timeout: float = EXCHANGE_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = provider
        self._channel = channel
        self._host = host
        self._port = port
        self._callback_path = callback_path
        self._client = client
        self._exchange_timeout = exchange_timeout
        self._server: HTTPServer | None = None
        self._thread: Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handled = False
        self.state = secrets.token_urlsafe(24)

    @property
    def origin(self) -> str:
        return f"http://{self._host}:{self._port}"

    @property
    def redirect_uri(self) -> str:
        return self.origin + self._callback_path

    async def __aenter__(self) -> CallbackRelay:
        self._loop = asyncio.get_running_loop()
        # Raises OSError if the port is taken
        self._server = HTTPServer((self._host, self._port), self._handler_class())
        self._port = self._server.server_address[1]
        self._thread = Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.debug("Callback relay listening on %s", self.redirect_uri)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await asyncio.to_thread(self._stop)

    def _stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        relay = self

        class _CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802
                parsed = urlparse(self.path)
                if parsed.path != relay._callback_path:
                    self._respond(404, b"Not found", "text/plain")
                    return
                status, body = relay.handle_callback(parse_qs(parsed.query))
                self._respond(status, body, "text/html; charset=utf-8")

            def _respond(self, status: int, body: bytes, content_type: str) -> None:
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format: str, *args: object) -> None:
                logger.debug("relay: " + format, *args)

        return _CallbackHandler

    def handle_callback(self, params: dict[str, list[str]]) -> tuple[int, bytes]:
        """Process one provider redirect. Called on the server thread."""
        state = params.get("state", [None])[0]
        if state != self.state:
            logger.warning("Rejected authorization callback with mismatched state")
            return 400, _render("Authorization failed", "State mismatch")
        if self._handled:
            return 400, _render("Authorization failed", "Callback already handled")
        self._handled = True

        error = params.get("error", [None])[0]
        if error:
            self._publish_threadsafe({"error": error})
            return 200, _render("Authorization failed", f"Authorization failed: {error}")

        code = params.get("code", [None])[0]
        if not code:
            self._publish_threadsafe({"error": "No authorization code received"})
            return 400, _render("Authorization failed", "Missing authorization code")

        assert self._loop is not None
        future = asyncio.run_coroutine_threadsafe(self.exchange(code), self._loop)
        try:
            ok = future.result(timeout=self._exchange_timeout + 5)
        except Exception:
            future.cancel()
            logger.exception("Authorization callback failed")
            self._publish_threadsafe({"error": CALLBACK_FAILED_MESSAGE})
            return 500, _render("Authorization failed", CALLBACK_FAILED_MESSAGE)
        if ok:
            return 200, _render(
                "Authorization successful",
                "Authorization successful. You can close this window.",
            )
        return 502, _render("Authorization failed", "Token exchange failed")

    def _publish_threadsafe(self, data: dict[str, Any]) -> None:
        assert self._loop is not None
        self._loop.call_soon_threadsafe(self._channel.publish, self.origin, data)

    async def exchange(self, code: str) -> bool:
        """Exchange ``code`` for tokens and publish the outcome.

        Returns True if tokens were published.
        """
        client_id = self._provider.client_id
        client_secret = self._provider.client_secret
        if not client_id or client_secret is None:
            self._channel.publish(self.origin, {"error": "OAuth credentials not configured"})
            return False

        form = {
            "client_id": client_id,
            "client_secret": client_secret.get_secret_value(),
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }
        try:
            if self._client is not None:
                response = await self._client.post(self._provider.token_url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self._exchange_timeout) as client:
                    response = await client.post(self._provider.token_url, data=form)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected token response type {type(data).__name__}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Token exchange failed: %s", e)
            self._channel.publish(self.origin, {"error": "Token exchange failed"})
            return False

        self._channel.publish(
            self.origin,
            {
                "success": True,
                "tokens": {
                    "access_token": data.get("access_token"),
                    "refresh_token": data.get("refresh_token"),
                    "scope": data.get("scope", ""),
                    "token_type": data.get("token_type"),
                    "expires_in": data.get("expires_in"),
                },
            },
        )
        logger.info("Token exchange completed for %s", self._provider.name)
        return True
