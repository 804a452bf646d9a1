"""Tests for the credential cache probe and its sources."""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from grantflow.auth.probe import (
    CredentialCacheProbe,
    HttpSessionStatus,
    StoredSessionStatus,
)
from grantflow.auth.storage import CredentialStore
from grantflow.auth.types import Credential


class StaticSource:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    async def fetch_status(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


VALID_STATUS = {
    "hasValidTokens": True,
    "tokens": {
        "access_token": "cached",
        "refresh_token": "r",
        "scope": "profile email",
        "token_type": "Bearer",
        "expires_in": 1200,
    },
}


class TestCredentialCacheProbe:
    async def test_returns_cached_credential(self):
        source = StaticSource(VALID_STATUS)
        credential = await CredentialCacheProbe(source).probe()

        assert credential is not None
        assert credential.access_token == "cached"
        assert credential.scope == frozenset({"profile", "email"})
        assert credential.expires_in_seconds == 1200
        assert source.calls == 1

    async def test_no_valid_tokens(self):
        assert await CredentialCacheProbe(StaticSource({"hasValidTokens": False})).probe() is None

    async def test_valid_flag_without_tokens(self):
        assert await CredentialCacheProbe(StaticSource({"hasValidTokens": True})).probe() is None

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            OSError("network down"),
            RuntimeError("anything"),
        ],
    )
    async def test_transport_failure_is_swallowed(self, error):
        source = StaticSource(error=error)
        assert await CredentialCacheProbe(source).probe() is None
        assert source.calls == 1

    @pytest.mark.parametrize(
        "result",
        [
            None,
            "nope",
            [],
            {},
            {"hasValidTokens": True, "tokens": {"scope": "x"}},
        ],
    )
    async def test_malformed_status_is_none(self, result):
        assert await CredentialCacheProbe(StaticSource(result)).probe() is None


class TestHttpSessionStatus:
    async def test_fetches_status(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=VALID_STATUS)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            source = HttpSessionStatus("https://app.example.com/", client=client)
            credential = await CredentialCacheProbe(source).probe()

        assert credential is not None
        assert credential.access_token == "cached"
        assert len(seen) == 1
        assert seen[0].method == "GET"
        assert str(seen[0].url) == "https://app.example.com/api/auth/check-google-tokens"

    async def test_http_error_reads_as_no_credential(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="oops")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            source = HttpSessionStatus("https://app.example.com", client=client)
            assert await CredentialCacheProbe(source).probe() is None
        assert calls == 1

    async def test_non_json_reads_as_no_credential(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            source = HttpSessionStatus("https://app.example.com", client=client)
            assert await CredentialCacheProbe(source).probe() is None


class TestStoredSessionStatus:
    def _store(self, tmp_path) -> CredentialStore:
        return CredentialStore(path=tmp_path / "credentials.json")

    async def test_missing(self, tmp_path):
        status = await StoredSessionStatus(self._store(tmp_path)).fetch_status()
        assert status == {"hasValidTokens": False}

    async def test_expired(self, tmp_path):
        store = self._store(tmp_path)
        store.save(
            "google",
            Credential(
                access_token="old",
                expires_in_seconds=60,
                issued_at=datetime.now(UTC) - timedelta(hours=1),
            ),
        )
        status = await StoredSessionStatus(store).fetch_status()
        assert status == {"hasValidTokens": False}

    async def test_valid_credential_reports_remaining_lifetime(self, tmp_path):
        store = self._store(tmp_path)
        store.save(
            "google",
            Credential(
                access_token="fresh",
                scope=frozenset({"email"}),
                expires_in_seconds=3600,
                issued_at=datetime.now(UTC) - timedelta(minutes=30),
            ),
        )
        credential = await CredentialCacheProbe(StoredSessionStatus(store)).probe()

        assert credential is not None
        assert credential.access_token == "fresh"
        assert credential.scope == frozenset({"email"})
        assert 1700 <= credential.expires_in_seconds <= 1800

    async def test_uses_key(self, tmp_path):
        store = self._store(tmp_path)
        store.save("other", Credential(access_token="x", expires_in_seconds=3600))
        status = await StoredSessionStatus(store, key="google").fetch_status()
        assert status["hasValidTokens"] is False
        status = await StoredSessionStatus(store, key="other").fetch_status()
        assert status["hasValidTokens"] is True
