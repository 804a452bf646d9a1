"""Handshake data contracts.

Everything that crosses the message channel is validated here before the
coordinator looks at it. Transport origin never comes from the payload; it
travels beside it in an ``Envelope``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError, field_validator

if TYPE_CHECKING:
    from grantflow.auth.surface import AuthorizationSurface

DEFAULT_TOKEN_TYPE = "Bearer"


def parse_scope(value: str | None) -> frozenset[str]:
    """Split a space-separated scope string into a set."""
    if not value:
        return frozenset()
    return frozenset(value.split())


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    """Scopes requested for one handshake attempt."""

    scopes: frozenset[str]

    def __post_init__(self) -> None:
        if isinstance(self.scopes, str):
            raise ValueError("Scopes must be a collection, not a string")
        normalized = frozenset(self.scopes)
        if not normalized:
            raise ValueError("At least one scope is required")
        for scope in normalized:
            if not isinstance(scope, str) or not scope.strip():
                raise ValueError(f"Invalid scope: {scope!r}")
        object.__setattr__(self, "scopes", normalized)


@dataclass(frozen=True, slots=True)
class Credential:
    """Access/refresh token bundle produced by a successful handshake."""

    access_token: str
    refresh_token: str | None = None
    scope: frozenset[str] = field(default_factory=frozenset)
    token_type: str = DEFAULT_TOKEN_TYPE
    expires_in_seconds: int = 0
    issued_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in_seconds)

    def seconds_remaining(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        return max(0, int((self.expires_at - now).total_seconds()))

    def is_expired(self, now: datetime | None = None, leeway: int = 0) -> bool:
        """True once fewer than ``leeway`` seconds of validity remain."""
        now = now or datetime.now(UTC)
        return now + timedelta(seconds=leeway) >= self.expires_at

    def to_wire(self, now: datetime | None = None) -> dict[str, Any]:
        """Render as the token payload used on the channel and probe."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "scope": " ".join(sorted(self.scope)),
            "token_type": self.token_type,
            "expires_in": self.seconds_remaining(now),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "scope": sorted(self.scope),
            "token_type": self.token_type,
            "expires_in_seconds": self.expires_in_seconds,
            "issued_at": self.issued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        issued_at = datetime.fromisoformat(str(data["issued_at"]))
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=UTC)
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token"),
            scope=frozenset(data.get("scope") or []),
            token_type=str(data.get("token_type") or DEFAULT_TOKEN_TYPE),
            expires_in_seconds=int(data["expires_in_seconds"]),
            issued_at=issued_at,
        )


class TokenPayload(BaseModel):
    """Credential-shaped payload as delivered by the relay or probe."""

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str | None = None
    expires_in: int = Field(ge=0)

    @field_validator("refresh_token", "token_type", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    def to_credential(self, issued_at: datetime | None = None) -> Credential:
        return Credential(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            scope=parse_scope(self.scope),
            token_type=self.token_type or DEFAULT_TOKEN_TYPE,
            expires_in_seconds=self.expires_in,
            issued_at=issued_at or datetime.now(UTC),
        )


class SessionStatus(BaseModel):
    """Response shape of a session-status query."""

    has_valid_tokens: bool = Field(alias="hasValidTokens")
    tokens: TokenPayload | None = None


class HandshakeStatus(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


@dataclass(eq=False)
class HandshakeSession:
    """State of one opened authorization surface."""

    surface: AuthorizationSurface
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: HandshakeStatus = HandshakeStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status is HandshakeStatus.PENDING

    def transition(self, status: HandshakeStatus) -> bool:
        """Leave PENDING for ``status``. Only the first call succeeds."""
        if status is HandshakeStatus.PENDING:
            raise ValueError("Cannot transition back to pending")
        if self.status is not HandshakeStatus.PENDING:
            return False
        self.status = status
        return True


@dataclass(frozen=True, slots=True)
class Envelope:
    """A channel message together with its transport-level origin."""

    origin: str
    data: Any


@dataclass(frozen=True, slots=True)
class TokenMessage:
    tokens: TokenPayload


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    error: str


InboundMessage = TokenMessage | ErrorMessage


class MalformedMessage(ValueError):
    """Payload matched neither known message shape."""


def parse_message(data: Any) -> InboundMessage:
    """Validate a raw channel payload into an ``InboundMessage``.

    Raises:
        MalformedMessage: If the payload is neither ``{error}`` nor
            ``{success: true, tokens}``.
    """
    if not isinstance(data, dict):
        raise MalformedMessage(f"Expected an object, got {type(data).__name__}")

    error = data.get("error")
    if error:
        return ErrorMessage(error=str(error))

    if data.get("success") is True and isinstance(data.get("tokens"), dict):
        try:
            return TokenMessage(tokens=TokenPayload.model_validate(data["tokens"]))
        except ValidationError as e:
            raise MalformedMessage(
                f"Invalid token payload: {e.error_count()} error(s)"
            ) from e

    raise MalformedMessage(f"Unrecognized message keys: {sorted(data)}")
