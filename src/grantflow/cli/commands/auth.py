"""Authorization commands."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from grantflow.cli.console import (
    console,
    dim,
    error,
    format_remaining,
    format_scopes,
    success,
)

if TYPE_CHECKING:
    from grantflow.auth.coordinator import HandshakeCoordinator
    from grantflow.auth.surface import SurfaceOpener
    from grantflow.auth.types import Credential
    from grantflow.config.models import GrantflowConfig


def register(app: typer.Typer) -> None:
    """Register the auth command group."""

    auth_app = typer.Typer(name="auth", help="Authorize access and manage credentials")

    @auth_app.command()
    def login(
        scope: Annotated[
            list[str] | None,
            typer.Option(
                "--scope",
                "-s",
                help="Scope to request (repeatable; default from config)",
            ),
        ] = None,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
        surface: Annotated[
            str | None,
            typer.Option(
                "--surface",
                help="Where to open the authorization page: browser, window, manual",
            ),
        ] = None,
        timeout: Annotated[
            float | None,
            typer.Option("--timeout", help="Give up after this many seconds"),
        ] = None,
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Ignore any cached credential"),
        ] = False,
    ) -> None:
        """Authorize grantflow with the configured provider.

        Examples:
            grantflow auth login
            grantflow auth login -s profile -s email --surface manual
        """
        from pydantic import ValidationError

        from grantflow.auth.errors import HandshakeError, UserCancelled
        from grantflow.config import load_config_or_default

        try:
            cfg = load_config_or_default(config_path)
            updates: dict[str, object] = {}
            if scope:
                updates["scopes"] = scope
            if surface is not None:
                updates["surface"] = surface
            if timeout is not None:
                updates["handshake"] = {
                    **cfg.handshake.model_dump(),
                    "timeout": timeout,
                }
            if updates:
                cfg = type(cfg).model_validate({**cfg.model_dump(), **updates})
        except (FileNotFoundError, ValidationError) as e:
            error(f"Invalid configuration: {e}")
            raise typer.Exit(1) from None

        try:
            credential = asyncio.run(_login(cfg, force=force))
        except KeyboardInterrupt:
            console.print("\n[dim]Login cancelled.[/dim]")
            raise typer.Exit(1) from None
        except UserCancelled:
            dim("Authorization window closed. Run 'grantflow auth login' to try again.")
            raise typer.Exit(1) from None
        except HandshakeError as e:
            error(str(e))
            raise typer.Exit(1) from None
        except OSError as e:
            error(f"Could not start callback server: {e}")
            raise typer.Exit(1) from None

        success("Authorized")
        console.print(f"  Scopes: {format_scopes(credential.scope)}")
        console.print(f"  Expires in: {format_remaining(credential)}")

    @auth_app.command()
    def status() -> None:
        """Show stored credentials and whether they are still valid."""
        from grantflow.auth.storage import CredentialStore

        store = CredentialStore()
        keys = store.list_keys()

        if not keys:
            dim("No stored credentials.")
            console.print("Run [bold]grantflow auth login[/bold] to authorize.")
            return

        for key in keys:
            credential = store.load(key)
            if not credential:
                console.print(f"  [bold]{key}[/bold]: [red]invalid[/red]")
                continue

            if credential.is_expired():
                expiry_text = "[yellow]expired[/yellow]"
            else:
                expiry_text = (
                    f"[green]valid[/green] (expires in {format_remaining(credential)})"
                )
            console.print(f"  [bold]{key}[/bold]: {expiry_text}")
            console.print(f"    Scopes: {format_scopes(credential.scope)}")

    @auth_app.command()
    def logout(
        key: Annotated[
            str,
            typer.Argument(help="Credential to remove"),
        ] = "google",
    ) -> None:
        """Remove a stored credential."""
        from grantflow.auth.storage import CredentialStore

        store = CredentialStore()
        if store.remove(key):
            success(f"Removed credential for {key}")
        else:
            dim(f"No credential found for {key}.")

    app.add_typer(auth_app)


def _make_opener(kind: str) -> SurfaceOpener:
    from grantflow.auth.surface import (
        ManualOpener,
        PlaywrightOpener,
        SystemBrowserOpener,
    )

    if kind == "window":
        return PlaywrightOpener()
    if kind == "manual":
        return ManualOpener(
            lambda url: console.print(
                f"\nOpen this URL to authorize:\n{url}\n", soft_wrap=True
            )
        )
    return SystemBrowserOpener()


@contextlib.asynccontextmanager
async def _open_coordinator(cfg: GrantflowConfig) -> AsyncIterator[HandshakeCoordinator]:
    """Start the callback relay and wire a coordinator to it."""
    from grantflow.auth.channel import LocalChannel
    from grantflow.auth.coordinator import HandshakeCoordinator
    from grantflow.auth.issuer import LocalUrlIssuer
    from grantflow.auth.relay import CallbackRelay

    channel = LocalChannel()
    async with CallbackRelay(
        cfg.provider,
        channel,
        host=cfg.relay.host,
        port=cfg.relay.port,
        callback_path=cfg.relay.callback_path,
    ) as relay:
        yield HandshakeCoordinator(
            LocalUrlIssuer(cfg.provider, relay.redirect_uri, relay.state),
            _make_opener(cfg.surface),
            channel,
            origin=relay.origin,
            poll_interval=cfg.handshake.poll_interval,
            timeout=cfg.handshake.timeout,
        )


async def _login(cfg: GrantflowConfig, force: bool = False) -> Credential:
    """Run the probe/handshake flow and persist the result.

    The relay only binds its port once the cache has missed.
    """
    from grantflow.auth.flow import obtain_credential_with
    from grantflow.auth.probe import (
        CredentialCacheProbe,
        HttpSessionStatus,
        StoredSessionStatus,
    )
    from grantflow.auth.storage import CredentialStore
    from grantflow.auth.types import AuthorizationRequest

    store = CredentialStore()
    request = AuthorizationRequest(frozenset(cfg.scopes))

    if force:
        async with _open_coordinator(cfg) as coordinator:
            credential = await coordinator.initiate(request)
        store.save(cfg.provider.name, credential)
        return credential

    if cfg.platform.base_url:
        source = HttpSessionStatus(
            cfg.platform.base_url, path=cfg.platform.session_status_path
        )
    else:
        source = StoredSessionStatus(store, cfg.provider.name)
    return await obtain_credential_with(
        request,
        CredentialCacheProbe(source),
        lambda: _open_coordinator(cfg),
        store=store,
        store_key=cfg.provider.name,
    )
