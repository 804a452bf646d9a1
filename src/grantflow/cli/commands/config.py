"""Configuration management commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from grantflow.cli.console import console, create_table, error, success, warning


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate, paths"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: $GRANTFLOW_HOME/config.toml)",
            ),
        ] = None,
    ) -> None:
        """Manage configuration."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from pydantic import ValidationError
        from rich.syntax import Syntax

        from grantflow.config import load_config
        from grantflow.config.paths import get_all_paths, get_config_path

        expanded_path = path.expanduser() if path else get_config_path()

        if action == "show":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            content = expanded_path.read_text()
            syntax = Syntax(content, "toml", theme="monokai", line_numbers=True)
            console.print(f"[bold]Config file: {expanded_path}[/bold]\n")
            console.print(syntax)

        elif action == "validate":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            try:
                cfg = load_config(expanded_path)
            except ValidationError as e:
                error("Configuration validation failed:")
                console.print()
                for err in e.errors():
                    loc = ".".join(str(x) for x in err["loc"])
                    console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
                raise typer.Exit(1) from None
            except Exception as e:
                error(f"Error loading config: {e}")
                raise typer.Exit(1) from None

            table = create_table(
                "Configuration Summary", [("Setting", "cyan"), ("Value", "green")]
            )
            table.add_row("Provider", cfg.provider.name)
            table.add_row(
                "Client ID",
                "configured" if cfg.provider.client_id else "[dim]not configured[/dim]",
            )
            table.add_row(
                "Client secret",
                "configured"
                if cfg.provider.client_secret
                else "[dim]not configured[/dim]",
            )
            table.add_row("Scopes", "\n".join(cfg.scopes))
            table.add_row("Surface", cfg.surface)
            table.add_row(
                "Callback", f"{cfg.relay.host}:{cfg.relay.port}{cfg.relay.callback_path}"
            )
            table.add_row("Poll interval", f"{cfg.handshake.poll_interval:g}s")
            table.add_row(
                "Timeout",
                f"{cfg.handshake.timeout:g}s" if cfg.handshake.timeout else "none",
            )

            success("Configuration is valid!")
            console.print()
            console.print(table)
            if not cfg.provider.client_id or cfg.provider.client_secret is None:
                console.print()
                warning(
                    "Client credentials are incomplete. Set provider.client_id "
                    "and provider.client_secret, or GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET."
                )

        elif action == "paths":
            table = create_table("grantflow paths", [("Name", "cyan"), ("Path", "green")])
            for name, location in get_all_paths().items():
                table.add_row(name, str(location))
            console.print(table)

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate, paths")
            raise typer.Exit(1)
