"""Shared console output for CLI commands."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from grantflow.logging import redact

if TYPE_CHECKING:
    from grantflow.auth.types import Credential

console = Console()


def error(msg: str) -> None:
    """Print an error in red. Token-shaped text is masked first."""
    console.print(f"[red]{escape(redact(msg))}[/red]")


def warning(msg: str) -> None:
    console.print(f"[yellow]{msg}[/yellow]")


def success(msg: str) -> None:
    console.print(f"[green]{msg}[/green]")


def dim(msg: str) -> None:
    console.print(f"[dim]{msg}[/dim]")


def format_scopes(scopes: Iterable[str]) -> str:
    return " ".join(sorted(scopes)) or "-"


def format_remaining(credential: Credential) -> str:
    """Render remaining validity as ``1h 5m``."""
    remaining = credential.seconds_remaining(datetime.now(UTC))
    hours, remainder = divmod(remaining, 3600)
    return f"{hours}h {remainder // 60}m"


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """Create a table from (name, style) column pairs."""
    table = Table(title=title)
    for name, style in columns:
        table.add_column(name, style=style)
    return table
