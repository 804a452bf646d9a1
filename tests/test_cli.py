"""Tests for CLI commands."""

import socket

import pytest

from grantflow.auth.storage import CredentialStore
from grantflow.auth.types import Credential
from grantflow.cli.app import app
from tests.conftest import FakeOpener, FakeSurface

CONFIG = """
scopes = ["profile", "email"]

[provider]
client_id = "client-123"
client_secret = "shh"

[relay]
port = 0

[handshake]
poll_interval = 0.01
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG)
    return path


class TestConfigCommand:
    """Tests for 'grantflow config' command."""

    def test_config_show_displays_content(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["config", "show", "--path", str(config_file)])
        assert result.exit_code == 0
        assert "[provider]" in result.stdout

    def test_config_show_missing_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["config", "show", "--path", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_config_validate_success(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(config_file)]
        )
        assert result.exit_code == 0
        assert "Configuration is valid!" in result.stdout

    def test_config_validate_invalid_toml(self, cli_runner, tmp_path):
        invalid_file = tmp_path / "invalid.toml"
        invalid_file.write_text("not valid toml [[[")

        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(invalid_file)]
        )
        assert result.exit_code == 1
        assert "Error loading config" in result.stdout

    def test_config_validate_invalid_config(self, cli_runner, tmp_path):
        invalid_config = tmp_path / "bad_config.toml"
        invalid_config.write_text('surface = "popup"\n')

        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(invalid_config)]
        )
        assert result.exit_code == 1
        assert "validation failed" in result.stdout.lower()

    def test_config_validate_warns_without_client_credentials(self, cli_runner, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('surface = "manual"\n')

        result = cli_runner.invoke(app, ["config", "validate", "--path", str(path)])

        assert result.exit_code == 0
        assert "Client credentials are incomplete" in result.stdout

    def test_config_paths(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "paths"])
        assert result.exit_code == 0
        for name in ("home", "config", "credentials", "logs"):
            assert name in result.stdout

    def test_config_unknown_action(self, cli_runner):
        result = cli_runner.invoke(app, ["config", "unknown"])
        assert result.exit_code == 1
        assert "Unknown action" in result.stdout


class TestAuthStatusAndLogout:
    """Tests for 'grantflow auth status' and 'grantflow auth logout'."""

    def test_status_empty(self, cli_runner):
        result = cli_runner.invoke(app, ["auth", "status"])
        assert result.exit_code == 0
        assert "No stored credentials" in result.stdout

    def test_status_lists_credentials(self, cli_runner):
        store = CredentialStore()
        store.save(
            "google",
            Credential(
                access_token="tok",
                scope=frozenset({"email"}),
                expires_in_seconds=3600,
            ),
        )
        store.save("stale", Credential(access_token="old", expires_in_seconds=0))

        result = cli_runner.invoke(app, ["auth", "status"])

        assert result.exit_code == 0
        assert "google" in result.stdout
        assert "valid" in result.stdout
        assert "expired" in result.stdout

    def test_logout(self, cli_runner):
        CredentialStore().save("google", Credential(access_token="tok"))

        result = cli_runner.invoke(app, ["auth", "logout"])
        assert result.exit_code == 0
        assert "Removed credential for google" in result.stdout
        assert CredentialStore().load("google") is None

    def test_logout_missing(self, cli_runner):
        result = cli_runner.invoke(app, ["auth", "logout", "other"])
        assert result.exit_code == 0
        assert "No credential found for other" in result.stdout


class TestAuthLogin:
    """Tests for 'grantflow auth login'."""

    def test_cached_credential_skips_handshake(self, cli_runner, config_file, monkeypatch):
        CredentialStore().save(
            "google",
            Credential(
                access_token="tok",
                scope=frozenset({"profile", "email"}),
                expires_in_seconds=3600,
            ),
        )

        def fail_opener(kind):
            raise AssertionError("no surface should be opened")

        monkeypatch.setattr("grantflow.cli.commands.auth._make_opener", fail_opener)

        result = cli_runner.invoke(app, ["auth", "login", "-c", str(config_file)])

        assert result.exit_code == 0, result.stdout
        assert "Authorized" in result.stdout
        assert "email profile" in result.stdout

    def test_cached_credential_with_busy_relay_port(self, cli_runner, tmp_path, monkeypatch):
        CredentialStore().save(
            "google",
            Credential(
                access_token="tok",
                scope=frozenset({"profile", "email"}),
                expires_in_seconds=3600,
            ),
        )
        monkeypatch.setattr(
            "grantflow.cli.commands.auth._make_opener",
            lambda kind: FakeOpener(FakeSurface()),
        )

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen()
            port = busy.getsockname()[1]
            path = tmp_path / "busy.toml"
            path.write_text(CONFIG.replace("port = 0", f"port = {port}"))

            result = cli_runner.invoke(app, ["auth", "login", "-c", str(path)])

        assert result.exit_code == 0, result.stdout
        assert "Authorized" in result.stdout

    def test_busy_relay_port_on_cache_miss(self, cli_runner, tmp_path):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen()
            port = busy.getsockname()[1]
            path = tmp_path / "busy.toml"
            path.write_text(CONFIG.replace("port = 0", f"port = {port}"))

            result = cli_runner.invoke(app, ["auth", "login", "-c", str(path)])

        assert result.exit_code == 1
        assert "Could not start callback server" in result.stdout

    def test_cached_credential_without_requested_scope(
        self, cli_runner, config_file, monkeypatch
    ):
        CredentialStore().save(
            "google",
            Credential(
                access_token="tok",
                scope=frozenset({"profile"}),
                expires_in_seconds=3600,
            ),
        )
        opener = FakeOpener(None)
        monkeypatch.setattr(
            "grantflow.cli.commands.auth._make_opener", lambda kind: opener
        )

        result = cli_runner.invoke(app, ["auth", "login", "-c", str(config_file)])

        assert result.exit_code == 1
        assert len(opener.opened) == 1

    def test_blocked_surface(self, cli_runner, config_file, monkeypatch):
        monkeypatch.setattr(
            "grantflow.cli.commands.auth._make_opener", lambda kind: FakeOpener(None)
        )

        result = cli_runner.invoke(app, ["auth", "login", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "could not be opened" in result.stdout

    def test_window_closed(self, cli_runner, config_file, monkeypatch):
        opener = FakeOpener(FakeSurface(close_after_checks=1))
        monkeypatch.setattr(
            "grantflow.cli.commands.auth._make_opener", lambda kind: opener
        )

        result = cli_runner.invoke(
            app, ["auth", "login", "-c", str(config_file), "--force"]
        )

        assert result.exit_code == 1
        assert "Authorization window closed" in result.stdout
        assert "client_id=client-123" in opener.opened[0]

    def test_timeout_option(self, cli_runner, config_file, monkeypatch):
        monkeypatch.setattr(
            "grantflow.cli.commands.auth._make_opener",
            lambda kind: FakeOpener(FakeSurface()),
        )

        result = cli_runner.invoke(
            app, ["auth", "login", "-c", str(config_file), "--timeout", "0.05"]
        )

        assert result.exit_code == 1
        assert "timed out" in result.stdout

    def test_missing_client_id(self, cli_runner, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text("[relay]\nport = 0\n")
        monkeypatch.setattr(
            "grantflow.cli.commands.auth._make_opener",
            lambda kind: FakeOpener(FakeSurface()),
        )

        result = cli_runner.invoke(app, ["auth", "login", "-c", str(path)])

        assert result.exit_code == 1
        assert "client_id" in result.stdout

    def test_invalid_surface_option(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["auth", "login", "-c", str(config_file), "--surface", "popup"]
        )
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    def test_missing_config_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["auth", "login", "-c", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout
