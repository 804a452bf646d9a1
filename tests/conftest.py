"""Shared test fixtures and fakes."""

import asyncio
from pathlib import Path

import pytest

from grantflow.auth.channel import LocalChannel
from grantflow.auth.coordinator import HandshakeCoordinator
from grantflow.config.paths import ENV_VAR, get_grantflow_home

ORIGIN = "http://127.0.0.1:1455"


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def grantflow_home(tmp_path: Path, monkeypatch) -> Path:
    """Point GRANTFLOW_HOME at a temp dir for every test."""
    home = tmp_path / "grantflow-home"
    monkeypatch.setenv(ENV_VAR, str(home))
    monkeypatch.delenv("GOOGLE_CLIENT_ID", raising=False)
    monkeypatch.delenv("GOOGLE_CLIENT_SECRET", raising=False)
    get_grantflow_home.cache_clear()
    yield home
    get_grantflow_home.cache_clear()


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})


# =============================================================================
# Handshake fakes
# =============================================================================


class FakeSurface:
    """Authorization surface whose closure is driven by the test."""

    def __init__(self, close_after_checks: int | None = None) -> None:
        self.checks = 0
        self.close_calls = 0
        self._close_after_checks = close_after_checks
        self._user_closed = False

    def user_close(self) -> None:
        self._user_closed = True

    @property
    def closed(self) -> bool:
        self.checks += 1
        if self._close_after_checks is not None and self.checks >= self._close_after_checks:
            self._user_closed = True
        return self._user_closed or self.close_calls > 0

    async def close(self) -> None:
        self.close_calls += 1


class FakeOpener:
    def __init__(self, surface: FakeSurface | None) -> None:
        self.surface = surface
        self.opened: list[str] = []

    async def open(self, url: str) -> FakeSurface | None:
        self.opened.append(url)
        return self.surface


class FakeIssuer:
    def __init__(self, url: str = "https://auth.example.com/authorize?x=1") -> None:
        self.url = url
        self.requests: list[list[str]] = []
        self.error: Exception | None = None

    async def get_authorization_url(self, scopes: list[str]) -> str:
        self.requests.append(scopes)
        if self.error is not None:
            raise self.error
        return self.url


class RecordingChannel(LocalChannel):
    def __init__(self) -> None:
        super().__init__()
        self.subscribe_calls = 0

    def subscribe(self, handler):
        self.subscribe_calls += 1
        return super().subscribe(handler)


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def opener(surface: FakeSurface) -> FakeOpener:
    return FakeOpener(surface)


@pytest.fixture
def issuer() -> FakeIssuer:
    return FakeIssuer()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def coordinator(issuer, opener, channel) -> HandshakeCoordinator:
    return HandshakeCoordinator(
        issuer, opener, channel, origin=ORIGIN, poll_interval=0.01
    )


async def wait_for_session(coordinator: HandshakeCoordinator):
    """Yield to the loop until ``coordinator`` has an open session."""
    for _ in range(100):
        if coordinator.session is not None:
            return coordinator.session
        await asyncio.sleep(0)
    raise AssertionError("handshake session never opened")


def success_payload(**overrides) -> dict:
    tokens = {
        "access_token": "tok123",
        "scope": "profile email",
        "token_type": "Bearer",
        "expires_in": 3600,
    }
    tokens.update(overrides)
    return {"success": True, "tokens": tokens}
