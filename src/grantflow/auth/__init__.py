"""Delegated authorization handshake."""

from grantflow.auth.channel import LocalChannel, MessageChannel
from grantflow.auth.coordinator import HandshakeCoordinator
from grantflow.auth.errors import (
    HandshakeError,
    HandshakeTimeout,
    IssuerUnavailable,
    ProviderDenied,
    SurfaceBlocked,
    UserCancelled,
)
from grantflow.auth.flow import obtain_credential, obtain_credential_with
from grantflow.auth.issuer import HttpUrlIssuer, LocalUrlIssuer
from grantflow.auth.probe import (
    CredentialCacheProbe,
    HttpSessionStatus,
    StoredSessionStatus,
)
from grantflow.auth.relay import CallbackRelay
from grantflow.auth.storage import CredentialStore
from grantflow.auth.types import (
    AuthorizationRequest,
    Credential,
    Envelope,
    HandshakeSession,
    HandshakeStatus,
)

__all__ = [
    "AuthorizationRequest",
    "CallbackRelay",
    "Credential",
    "CredentialCacheProbe",
    "CredentialStore",
    "Envelope",
    "HandshakeCoordinator",
    "HandshakeError",
    "HandshakeSession",
    "HandshakeStatus",
    "HandshakeTimeout",
    "HttpSessionStatus",
    "HttpUrlIssuer",
    "IssuerUnavailable",
    "LocalChannel",
    "LocalUrlIssuer",
    "MessageChannel",
    "ProviderDenied",
    "StoredSessionStatus",
    "SurfaceBlocked",
    "UserCancelled",
    "obtain_credential",
    "obtain_credential_with",
]
