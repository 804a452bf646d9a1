"""Message channel between the token relay and the coordinator.

A channel is created per handshake attempt and handed to both sides, so two
concurrent attempts never observe each other's messages.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from grantflow.auth.types import Envelope

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Envelope], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class MessageChannel(Protocol):
    def subscribe(self, handler: MessageHandler) -> Subscription: ...


class _LocalSubscription:
    def __init__(self, channel: LocalChannel, handler: MessageHandler) -> None:
        self._channel = channel
        self._handler = handler

    def unsubscribe(self) -> None:
        self._channel._remove(self._handler)


class LocalChannel:
    """In-process channel. Must be used from a single event loop thread."""

    def __init__(self) -> None:
        self._handlers: list[MessageHandler] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: MessageHandler) -> Subscription:
        self._handlers.append(handler)
        return _LocalSubscription(self, handler)

    def publish(self, origin: str, data: Any) -> None:
        """Deliver ``data`` to every current subscriber, tagged with ``origin``."""
        envelope = Envelope(origin=origin, data=data)
        # Handlers may unsubscribe while being called
        for handler in list(self._handlers):
            handler(envelope)

    def _remove(self, handler: MessageHandler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            logger.debug("Handler already unsubscribed")
