"""Main CLI application."""

from typing import Annotated

import typer

from grantflow.cli.commands import auth, config

app = typer.Typer(
    name="grantflow",
    help="grantflow - delegated OAuth authorization",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Log level (DEBUG, INFO, WARNING, ERROR)",
        ),
    ] = None,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log-file",
            help="Also write JSONL logs under $GRANTFLOW_HOME/logs",
        ),
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    from grantflow.logging import configure_logging

    configure_logging(level=log_level, use_rich=True, log_to_file=log_to_file)


auth.register(app)
config.register(app)


if __name__ == "__main__":
    app()
