"""CLI command modules."""

from grantflow.cli.commands import auth, config

__all__ = [
    "auth",
    "config",
]
