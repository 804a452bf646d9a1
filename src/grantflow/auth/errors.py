"""Handshake failure taxonomy.

Every failure is terminal for the attempt that raised it. Callers decide
whether to start another attempt.
"""


class HandshakeError(Exception):
    """Base class for handshake failures."""


class IssuerUnavailable(HandshakeError):
    """The authorization URL could not be obtained."""


class SurfaceBlocked(HandshakeError):
    """The authorization surface could not be opened."""

    def __init__(self, message: str = "Authorization window could not be opened"):
        super().__init__(message)


class ProviderDenied(HandshakeError):
    """The provider (or relay) answered with an explicit error."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UserCancelled(HandshakeError):
    """The authorization surface was closed before completion."""

    def __init__(self, message: str = "Authorization cancelled"):
        super().__init__(message)


class HandshakeTimeout(HandshakeError):
    """No decisive signal arrived within the configured timeout."""

    def __init__(self, timeout: float):
        super().__init__(f"Authorization timed out after {timeout:g}s")
        self.timeout = timeout
