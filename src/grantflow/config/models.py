"""Configuration models using Pydantic."""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator

# Default scopes requested by `grantflow auth login`
DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


class ProviderConfig(BaseModel):
    """OAuth 2.0 identity provider.

    Defaults point at Google. client_id and client_secret may also come
    from GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET.
    """

    name: str = "google"
    client_id: str | None = None
    client_secret: SecretStr | None = None
    auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"


class RelayConfig(BaseModel):
    """Loopback callback server that receives the provider redirect."""

    host: str = "127.0.0.1"
    port: int = Field(default=1455, ge=0, le=65535)
    callback_path: str = "/oauth/callback"

    @field_validator("callback_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("callback_path must start with '/'")
        return value


class HandshakeConfig(BaseModel):
    """Handshake timing.

    timeout has no default duration: None waits for as long as the
    authorization window stays open.
    """

    poll_interval: float = Field(default=1.0, gt=0)
    timeout: float | None = Field(default=None, gt=0)


class PlatformConfig(BaseModel):
    """Remote platform that tracks session credentials server-side."""

    base_url: str | None = None
    session_status_path: str = "/api/auth/check-google-tokens"


class GrantflowConfig(BaseModel):
    """Root configuration model."""

    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    surface: Literal["browser", "window", "manual"] = "browser"
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    handshake: HandshakeConfig = Field(default_factory=HandshakeConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)

    @field_validator("scopes")
    @classmethod
    def _non_empty_scopes(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("At least one scope is required")
        return value
